import logging

from fastapi import HTTPException, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ashram.cache import TAG_GURUJI, TTL_LONG, memory_cache
from ashram.core.errors import (
    InvalidStatusTransitionError,
    RecordNotFoundError,
    SchedulingError,
    SlotUnavailableError,
)
from ashram.database import ensure_appointment_schema
from ashram.repositories.user import UserRepository


logger = logging.getLogger(__name__)

DATABASE_UNAVAILABLE_DETAIL = 'Database unavailable. Verify DATABASE_URL and database credentials.'
DEFAULT_GURUJI_CACHE_KEY = 'guruji:default'


def database_unavailable() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail=DATABASE_UNAVAILABLE_DETAIL,
    )


def ensure_database_ready() -> None:
    try:
        ensure_appointment_schema()
    except SQLAlchemyError as exc:
        logger.exception('Appointment schema check failed')
        raise database_unavailable() from exc


def to_http_exception(exc: SchedulingError) -> HTTPException:
    if isinstance(exc, RecordNotFoundError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
    if isinstance(exc, (SlotUnavailableError, InvalidStatusTransitionError)):
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc))
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))


def resolve_guruji_id(guruji_id: str | None, db: Session) -> str:
    if guruji_id:
        return guruji_id

    def load_default() -> str | None:
        guruji = UserRepository(db).get_default_guruji()
        return guruji.id if guruji else None

    default_id = memory_cache.get_or_set(DEFAULT_GURUJI_CACHE_KEY, load_default, TTL_LONG, tags=(TAG_GURUJI,))
    if default_id is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail='No Guruji available. Please contact support.',
        )
    return default_id
