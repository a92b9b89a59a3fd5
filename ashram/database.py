import logging
from threading import Lock

from sqlalchemy import create_engine, inspect, text
from sqlalchemy.orm import declarative_base, sessionmaker

from ashram.core import config


logger = logging.getLogger(__name__)

_connect_args = {"check_same_thread": False} if config.DATABASE_URL.startswith("sqlite") else {}

engine = create_engine(
    config.DATABASE_URL,
    echo=config.DATABASE_ECHO,
    pool_pre_ping=True,
    connect_args=_connect_args,
)

SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
)

Base = declarative_base()

_schema_lock = Lock()
_appointment_schema_checked = False


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def ping_database() -> bool:
    with engine.connect() as connection:
        connection.execute(text("SELECT 1"))
    return True


def ensure_appointment_schema() -> None:
    global _appointment_schema_checked

    if _appointment_schema_checked:
        return

    with _schema_lock:
        if _appointment_schema_checked:
            return

        inspector = inspect(engine)

        if 'appointments' not in inspector.get_table_names():
            _appointment_schema_checked = True
            return

        existing_columns = {column['name'] for column in inspector.get_columns('appointments')}
        migration_steps = [
            ('priority', "ALTER TABLE appointments ADD COLUMN priority VARCHAR(16) DEFAULT 'NORMAL'"),
            ('reason', 'ALTER TABLE appointments ADD COLUMN reason TEXT'),
            ('is_recurring', 'ALTER TABLE appointments ADD COLUMN is_recurring BOOLEAN DEFAULT FALSE'),
            ('recurring_pattern', 'ALTER TABLE appointments ADD COLUMN recurring_pattern JSON'),
            ('check_in_code', 'ALTER TABLE appointments ADD COLUMN check_in_code VARCHAR(64)'),
            ('checked_in_at', 'ALTER TABLE appointments ADD COLUMN checked_in_at TIMESTAMP'),
        ]

        with engine.begin() as connection:
            for column_name, statement in migration_steps:
                if column_name not in existing_columns:
                    logger.info('Adding missing appointments.%s column', column_name)
                    connection.execute(text(statement))
            connection.execute(
                text('CREATE INDEX IF NOT EXISTS idx_appointments_guruji_date ON appointments(guruji_id, date)')
            )
            connection.execute(
                text('CREATE INDEX IF NOT EXISTS idx_appointments_time_range ON appointments(start_time, end_time)')
            )
            connection.execute(
                text('CREATE INDEX IF NOT EXISTS idx_appointments_status_updated ON appointments(status, updated_at)')
            )

        _appointment_schema_checked = True
