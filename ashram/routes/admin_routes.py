from datetime import date

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field, field_validator
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ashram.cache import TAG_APPOINTMENTS, TTL_SHORT, memory_cache
from ashram.core import config
from ashram.core.errors import SchedulingError
from ashram.database import get_db
from ashram.models.enums import AppointmentStatus, Priority
from ashram.repositories.appointment import AppointmentRepository
from ashram.routes.appointment_routes import AppointmentResponse
from ashram.routes.common import database_unavailable, ensure_database_ready, to_http_exception

router = APIRouter(tags=['admin'])


class AppointmentPageResponse(BaseModel):
    appointments: list[AppointmentResponse]
    page: int
    limit: int
    total: int
    total_pages: int
    has_next: bool
    has_prev: bool


class AppointmentStatsResponse(BaseModel):
    total: int
    by_status: dict[str, int]
    by_priority: dict[str, int]
    today_count: int
    upcoming_count: int
    completed_today: int

    class Config:
        from_attributes = True


class BulkStatusRequest(BaseModel):
    appointment_ids: list[str] = Field(min_length=1)
    status: AppointmentStatus


class BulkCancelRequest(BaseModel):
    appointment_ids: list[str] = Field(min_length=1)
    reason: str | None = None

    @field_validator('reason')
    @classmethod
    def validate_reason(cls, value: str | None) -> str | None:
        if value is None:
            return None
        normalized = value.strip()
        if len(normalized) > config.MAX_REASON_LENGTH:
            raise ValueError(f'Reason must be {config.MAX_REASON_LENGTH} characters or fewer.')
        return normalized or None


class BulkResultResponse(BaseModel):
    count: int


@router.get('/appointments', response_model=AppointmentPageResponse)
def search_appointments(
    search: str | None = Query(default=None),
    status: AppointmentStatus | None = Query(default=None),
    priority: Priority | None = Query(default=None),
    guruji_id: str | None = Query(default=None),
    user_id: str | None = Query(default=None),
    date_from: date | None = Query(default=None),
    date_to: date | None = Query(default=None),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        result = AppointmentRepository(db).search_appointments(
            search=search,
            status=status,
            priority=priority,
            guruji_id=guruji_id,
            user_id=user_id,
            date_from=date_from,
            date_to=date_to,
            page=page,
            limit=limit,
        )
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc

    return AppointmentPageResponse(
        appointments=[AppointmentResponse.model_validate(appointment) for appointment in result.data],
        page=result.page,
        limit=result.limit,
        total=result.total,
        total_pages=result.total_pages,
        has_next=result.has_next,
        has_prev=result.has_prev,
    )


@router.get('/appointments/stats', response_model=AppointmentStatsResponse)
def appointment_stats(
    date_from: date | None = Query(default=None),
    date_to: date | None = Query(default=None),
    guruji_id: str | None = Query(default=None),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    cache_key = f'appointments:stats:{date_from}:{date_to}:{guruji_id}'
    try:
        stats = memory_cache.get_or_set(
            cache_key,
            lambda: AppointmentRepository(db).get_appointment_stats(date_from, date_to, guruji_id),
            TTL_SHORT,
            tags=(TAG_APPOINTMENTS,),
        )
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc

    return AppointmentStatsResponse.model_validate(stats)


@router.post('/appointments/bulk-status', response_model=BulkResultResponse)
def bulk_update_status(data: BulkStatusRequest, db: Session = Depends(get_db)):
    ensure_database_ready()

    try:
        count = AppointmentRepository(db).bulk_update_status(data.appointment_ids, data.status)
    except SchedulingError as exc:
        raise to_http_exception(exc) from exc
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc

    memory_cache.invalidate_by_tag(TAG_APPOINTMENTS)
    return BulkResultResponse(count=count)


@router.post('/appointments/bulk-cancel', response_model=BulkResultResponse)
def bulk_cancel(data: BulkCancelRequest, db: Session = Depends(get_db)):
    ensure_database_ready()

    try:
        count = AppointmentRepository(db).bulk_cancel(data.appointment_ids, data.reason)
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc

    memory_cache.invalidate_by_tag(TAG_APPOINTMENTS)
    return BulkResultResponse(count=count)


@router.delete('/appointments/cancelled', response_model=BulkResultResponse)
def cleanup_cancelled(
    days_old: int = Query(default=config.CANCELLED_RETENTION_DAYS, ge=1),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        count = AppointmentRepository(db).delete_old_cancelled_appointments(days_old)
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc

    memory_cache.invalidate_by_tag(TAG_APPOINTMENTS)
    return BulkResultResponse(count=count)
