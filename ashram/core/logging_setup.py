import logging

from ashram.core import config

LOG_FORMAT = '%(asctime)s %(levelname)s [%(name)s] %(message)s'


def configure_logging(level: str | None = None) -> None:
    logging.basicConfig(level=level or config.LOG_LEVEL, format=LOG_FORMAT)
    # SQL statements are logged only when DATABASE_ECHO is set.
    logging.getLogger('sqlalchemy.engine').setLevel(logging.WARNING)
