from datetime import date, datetime, time, timedelta
from typing import Callable, Literal

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, Field, field_validator, model_validator
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ashram.cache import TAG_APPOINTMENTS, memory_cache
from ashram.core import config
from ashram.core.errors import AppointmentNotFoundError, SchedulingError
from ashram.database import get_db
from ashram.models.appointment import Appointment
from ashram.models.enums import AppointmentStatus, Priority
from ashram.rate_limiter import booking_rate_limiter
from ashram.repositories.appointment import AppointmentRepository
from ashram.routes.common import (
    database_unavailable,
    ensure_database_ready,
    resolve_guruji_id,
    to_http_exception,
)
from ashram.scheduling import lifecycle
from ashram.scheduling.overlap import find_conflicting_appointments
from ashram.scheduling.slots import business_hours, get_available_slots

router = APIRouter(tags=['appointments'])

MAX_APPOINTMENT_MINUTES = (config.BUSINESS_END_HOUR - config.BUSINESS_START_HOUR) * 60


def _normalize_reason(value: str | None) -> str | None:
    if value is None:
        return None

    normalized = value.strip()
    if not normalized:
        return None

    if len(normalized) > config.MAX_REASON_LENGTH:
        raise ValueError(f'Reason must be {config.MAX_REASON_LENGTH} characters or fewer.')

    return normalized


def _to_local_naive(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value
    return value.astimezone().replace(tzinfo=None)


class RecurringPattern(BaseModel):
    frequency: Literal['daily', 'weekly', 'monthly'] | None = None
    interval: int | None = Field(default=None, ge=1, le=12)
    end_date: date | None = None


class CreateAppointmentRequest(BaseModel):
    user_id: str
    guruji_id: str | None = None
    date: date
    time: time
    duration_minutes: int = Field(default=config.DEFAULT_SLOT_DURATION_MINUTES, ge=1, le=MAX_APPOINTMENT_MINUTES)
    reason: str | None = None
    priority: Priority = Priority.NORMAL
    is_recurring: bool = False
    recurring_pattern: RecurringPattern | None = None

    @field_validator('user_id')
    @classmethod
    def validate_user_id(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError('User is required.')
        return normalized

    @field_validator('guruji_id')
    @classmethod
    def validate_guruji_id(cls, value: str | None) -> str | None:
        if value is None:
            return None
        return value.strip() or None

    @field_validator('reason')
    @classmethod
    def validate_reason(cls, value: str | None) -> str | None:
        return _normalize_reason(value)

    @model_validator(mode='after')
    def validate_recurrence(self) -> 'CreateAppointmentRequest':
        if self.is_recurring and self.recurring_pattern is None:
            raise ValueError('Recurring pattern is required for recurring appointments.')
        return self


class UpdateStatusRequest(BaseModel):
    status: AppointmentStatus


class CancelAppointmentRequest(BaseModel):
    reason: str | None = None

    @field_validator('reason')
    @classmethod
    def validate_reason(cls, value: str | None) -> str | None:
        return _normalize_reason(value)


class CheckInRequest(BaseModel):
    check_in_code: str

    @field_validator('check_in_code')
    @classmethod
    def validate_check_in_code(cls, value: str) -> str:
        normalized = value.strip().upper()
        if not normalized:
            raise ValueError('Check-in code is required.')
        return normalized


class AppointmentResponse(BaseModel):
    id: str
    user_id: str
    guruji_id: str | None = None
    date: date
    start_time: datetime
    end_time: datetime
    status: AppointmentStatus
    priority: Priority
    reason: str | None = None
    notes: str | None = None
    is_recurring: bool = False
    recurring_pattern: dict | None = None
    check_in_code: str | None = None
    checked_in_at: datetime | None = None
    created_at: datetime | None = None

    class Config:
        from_attributes = True


class AppointmentListResponse(BaseModel):
    appointments: list[AppointmentResponse]
    total: int
    limit: int
    offset: int
    has_more: bool


class AvailabilitySlotResponse(BaseModel):
    date: date
    start_time: datetime
    end_time: datetime
    is_available: bool
    guruji_id: str

    class Config:
        from_attributes = True


class BusinessHoursResponse(BaseModel):
    start: str
    end: str


class AvailabilityResponse(BaseModel):
    date: date
    guruji_id: str
    slot_duration_minutes: int
    business_hours: BusinessHoursResponse
    slots: list[AvailabilitySlotResponse]
    total_slots: int
    available_count: int
    booked_count: int


def _format_hour(hour: int) -> str:
    suffix = 'AM' if hour % 24 < 12 else 'PM'
    return f'{(hour % 12) or 12}:00 {suffix}'


def validate_booking_window(start_time: datetime, end_time: datetime, now: datetime | None = None) -> None:
    now = now or datetime.now()

    if start_time <= now:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail='Appointment date must be in the future.',
        )

    if start_time.weekday() == 6:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail='Appointments cannot be scheduled on Sundays.',
        )

    opening, closing = business_hours(start_time.date())
    if start_time < opening or end_time > closing:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=(
                f'Appointments can only be scheduled between {_format_hour(config.BUSINESS_START_HOUR)} '
                f'and {_format_hour(config.BUSINESS_END_HOUR)}.'
            ),
        )


def _apply(action: Callable[[], Appointment], db: Session) -> Appointment:
    ensure_database_ready()

    try:
        appointment = action()
    except SchedulingError as exc:
        raise to_http_exception(exc) from exc
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc

    memory_cache.invalidate_by_tag(TAG_APPOINTMENTS)
    return appointment


@router.post(
    '',
    response_model=AppointmentResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(booking_rate_limiter)],
)
def book_appointment(data: CreateAppointmentRequest, db: Session = Depends(get_db)):
    start_time = _to_local_naive(datetime.combine(data.date, data.time)).replace(second=0, microsecond=0)
    end_time = start_time + timedelta(minutes=data.duration_minutes)
    validate_booking_window(start_time, end_time)

    def book() -> Appointment:
        guruji_id = resolve_guruji_id(data.guruji_id, db)
        return lifecycle.create_appointment(
            {
                'user_id': data.user_id,
                'guruji_id': guruji_id,
                'date': start_time.date(),
                'start_time': start_time,
                'end_time': end_time,
                'priority': data.priority,
                'reason': data.reason,
                'is_recurring': data.is_recurring,
                'recurring_pattern': data.recurring_pattern.model_dump(mode='json') if data.recurring_pattern else None,
            },
            db,
        )

    return _apply(book, db)


@router.get('', response_model=AppointmentListResponse)
def list_appointments(
    user_id: str = Query(...),
    status_filter: AppointmentStatus | None = Query(default=None, alias='status'),
    limit: int = Query(default=10, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_db),
):
    normalized_user_id = user_id.strip()
    if not normalized_user_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail='User is required.',
        )

    ensure_database_ready()

    try:
        repository = AppointmentRepository(db)
        filters = [Appointment.status == status_filter] if status_filter else []
        appointments = repository.find_by_user_id(
            normalized_user_id,
            filters=filters,
            order_by=(Appointment.date.desc(), Appointment.start_time.desc()),
            limit=limit,
            offset=offset,
        )
        total = repository.count([Appointment.user_id == normalized_user_id, *filters])
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc

    return AppointmentListResponse(
        appointments=[AppointmentResponse.model_validate(appointment) for appointment in appointments],
        total=total,
        limit=limit,
        offset=offset,
        has_more=offset + limit < total,
    )


@router.get('/availability', response_model=AvailabilityResponse)
def get_availability(
    day: date = Query(..., alias='date'),
    guruji_id: str | None = Query(default=None),
    slot_duration_minutes: int = Query(default=config.DEFAULT_SLOT_DURATION_MINUTES, ge=1),
    db: Session = Depends(get_db),
):
    if day < date.today():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail='Cannot book appointments for past dates.',
        )

    ensure_database_ready()

    try:
        resolved_guruji_id = resolve_guruji_id(guruji_id, db)
        slots = get_available_slots(resolved_guruji_id, day, db, slot_duration_minutes)
    except SchedulingError as exc:
        raise to_http_exception(exc) from exc
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc

    available_count = sum(1 for slot in slots if slot.is_available)
    return AvailabilityResponse(
        date=day,
        guruji_id=resolved_guruji_id,
        slot_duration_minutes=slot_duration_minutes,
        business_hours=BusinessHoursResponse(
            start=f'{config.BUSINESS_START_HOUR:02d}:00',
            end=f'{config.BUSINESS_END_HOUR:02d}:00',
        ),
        slots=[AvailabilitySlotResponse.model_validate(slot) for slot in slots],
        total_slots=len(slots),
        available_count=available_count,
        booked_count=len(slots) - available_count,
    )


@router.get('/conflicts', response_model=list[AppointmentResponse])
def list_conflicts(
    guruji_id: str = Query(...),
    start_time: datetime = Query(...),
    end_time: datetime = Query(...),
    exclude_id: str | None = Query(default=None),
    db: Session = Depends(get_db),
):
    start_time = _to_local_naive(start_time)
    end_time = _to_local_naive(end_time)

    ensure_database_ready()

    try:
        return find_conflicting_appointments(
            guruji_id.strip(),
            start_time.date(),
            start_time,
            end_time,
            db,
            exclude_id=exclude_id,
        )
    except SchedulingError as exc:
        raise to_http_exception(exc) from exc
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc


@router.post('/check-in', response_model=AppointmentResponse)
def check_in_with_code(data: CheckInRequest, db: Session = Depends(get_db)):
    return _apply(lambda: lifecycle.check_in_by_code(data.check_in_code, db), db)


@router.get('/{appointment_id}', response_model=AppointmentResponse)
def get_appointment(appointment_id: str, db: Session = Depends(get_db)):
    ensure_database_ready()

    try:
        appointment = AppointmentRepository(db).find_by_id_with_relations(appointment_id)
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc

    if appointment is None:
        raise to_http_exception(AppointmentNotFoundError(appointment_id))
    return appointment


@router.patch('/{appointment_id}/status', response_model=AppointmentResponse)
def update_status(appointment_id: str, data: UpdateStatusRequest, db: Session = Depends(get_db)):
    return _apply(lambda: lifecycle.update_appointment_status(appointment_id, data.status, db), db)


@router.post('/{appointment_id}/check-in', response_model=AppointmentResponse)
def check_in(appointment_id: str, db: Session = Depends(get_db)):
    return _apply(lambda: lifecycle.check_in_appointment(appointment_id, db), db)


@router.post('/{appointment_id}/cancel', response_model=AppointmentResponse)
def cancel(
    appointment_id: str,
    data: CancelAppointmentRequest | None = None,
    db: Session = Depends(get_db),
):
    reason = data.reason if data else None
    return _apply(lambda: lifecycle.cancel_appointment(appointment_id, db, reason=reason), db)


@router.post('/{appointment_id}/complete', response_model=AppointmentResponse)
def complete(appointment_id: str, db: Session = Depends(get_db)):
    return _apply(lambda: lifecycle.complete_appointment(appointment_id, db), db)
