"""
Appointment lifecycle: booking and status transitions.

Statuses move forward along BOOKED -> CONFIRMED -> CHECKED_IN ->
IN_PROGRESS -> COMPLETED. CANCELLED and NO_SHOW are terminal and can be
reached from any state before the consultation starts.
"""

import logging
import secrets
import string
import time
from datetime import datetime
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ashram.core.errors import (
    AppointmentNotFoundError,
    AppointmentValidationError,
    InvalidStatusTransitionError,
    SchedulingError,
    SlotUnavailableError,
)
from ashram.models.appointment import Appointment
from ashram.models.enums import AppointmentStatus, Role
from ashram.models.user import User
from ashram.repositories.appointment import AppointmentRepository
from ashram.scheduling.overlap import find_conflicting_appointments


logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS: dict[AppointmentStatus, frozenset[AppointmentStatus]] = {
    AppointmentStatus.BOOKED: frozenset({
        AppointmentStatus.CONFIRMED,
        AppointmentStatus.CHECKED_IN,
        AppointmentStatus.CANCELLED,
        AppointmentStatus.NO_SHOW,
    }),
    AppointmentStatus.CONFIRMED: frozenset({
        AppointmentStatus.CHECKED_IN,
        AppointmentStatus.CANCELLED,
        AppointmentStatus.NO_SHOW,
    }),
    AppointmentStatus.CHECKED_IN: frozenset({
        AppointmentStatus.IN_PROGRESS,
        AppointmentStatus.COMPLETED,
        AppointmentStatus.CANCELLED,
        AppointmentStatus.NO_SHOW,
    }),
    AppointmentStatus.IN_PROGRESS: frozenset({AppointmentStatus.COMPLETED}),
    AppointmentStatus.COMPLETED: frozenset(),
    AppointmentStatus.CANCELLED: frozenset(),
    AppointmentStatus.NO_SHOW: frozenset(),
}

_CODE_ALPHABET = string.digits + string.ascii_lowercase

BOOKABLE_FIELDS = {
    'user_id',
    'guruji_id',
    'date',
    'start_time',
    'end_time',
    'priority',
    'reason',
    'notes',
    'is_recurring',
    'recurring_pattern',
}


def can_transition(current: AppointmentStatus, requested: AppointmentStatus) -> bool:
    return requested in ALLOWED_TRANSITIONS[current]


def _to_base36(value: int) -> str:
    digits = []
    while value:
        value, remainder = divmod(value, 36)
        digits.append(_CODE_ALPHABET[remainder])
    return ''.join(reversed(digits)) or '0'


def generate_check_in_code() -> str:
    timestamp = _to_base36(int(time.time() * 1000))
    suffix = ''.join(secrets.choice(_CODE_ALPHABET) for _ in range(9))
    return f'APT-{timestamp}-{suffix}'.upper()


def _lock_guruji(guruji_id: str, db: Session) -> User:
    # Row lock serializes bookings for one guruji until the insert commits.
    guruji = db.query(User).filter(User.id == guruji_id).with_for_update().first()
    if guruji is None or guruji.role != Role.GURUJI:
        raise AppointmentValidationError('Selected guruji does not exist.')
    if not guruji.is_active:
        raise AppointmentValidationError('Selected guruji is not accepting appointments.')
    return guruji


def create_appointment(data: dict[str, Any], db: Session) -> Appointment:
    unknown_fields = set(data) - BOOKABLE_FIELDS
    if unknown_fields:
        raise AppointmentValidationError(f'Unknown appointment fields: {", ".join(sorted(unknown_fields))}.')

    user_id = data.get('user_id')
    guruji_id = data.get('guruji_id')
    start_time = data.get('start_time')
    end_time = data.get('end_time')
    if not user_id:
        raise AppointmentValidationError('A requesting user is required.')
    if not guruji_id:
        raise AppointmentValidationError('A guruji is required to book an appointment.')
    if start_time is None or end_time is None:
        raise AppointmentValidationError('Appointment start and end times are required.')

    day = data.get('date') or start_time.date()

    try:
        _lock_guruji(guruji_id, db)
        conflicts = find_conflicting_appointments(guruji_id, day, start_time, end_time, db)
        if conflicts:
            raise SlotUnavailableError(conflicts)
    except (SchedulingError, SQLAlchemyError):
        db.rollback()
        raise

    appointment = AppointmentRepository(db).create({
        **data,
        'date': day,
        'status': AppointmentStatus.BOOKED,
        'check_in_code': generate_check_in_code(),
    })
    logger.info(
        'Booked appointment %s with guruji %s from %s to %s',
        appointment.id,
        guruji_id,
        start_time.isoformat(),
        end_time.isoformat(),
    )
    return appointment


def _get_appointment(appointment_id: str, repository: AppointmentRepository) -> Appointment:
    appointment = repository.find_by_id(appointment_id)
    if appointment is None:
        raise AppointmentNotFoundError(appointment_id)
    return appointment


def update_appointment_status(
    appointment_id: str,
    status: AppointmentStatus,
    db: Session,
    changes: dict[str, Any] | None = None,
) -> Appointment:
    repository = AppointmentRepository(db)
    appointment = _get_appointment(appointment_id, repository)
    current = appointment.status

    if current == status:
        return appointment
    if not can_transition(current, status):
        raise InvalidStatusTransitionError(current, status)

    data = {'status': status, **(changes or {})}
    if status == AppointmentStatus.CHECKED_IN:
        data['checked_in_at'] = datetime.now()

    updated = repository.update(appointment_id, data)
    logger.info('Appointment %s moved from %s to %s', appointment_id, current.value, status.value)
    return updated


def check_in_appointment(appointment_id: str, db: Session) -> Appointment:
    return update_appointment_status(appointment_id, AppointmentStatus.CHECKED_IN, db)


def check_in_by_code(check_in_code: str, db: Session) -> Appointment:
    code = (check_in_code or '').strip().upper()
    if not code:
        raise AppointmentValidationError('Check-in code is required.')

    appointment = AppointmentRepository(db).find_by_check_in_code(code)
    if appointment is None:
        raise AppointmentNotFoundError(code)
    return check_in_appointment(appointment.id, db)


def cancel_appointment(appointment_id: str, db: Session, reason: str | None = None) -> Appointment:
    changes = {'notes': reason} if reason else None
    return update_appointment_status(appointment_id, AppointmentStatus.CANCELLED, db, changes)


def complete_appointment(appointment_id: str, db: Session) -> Appointment:
    return update_appointment_status(appointment_id, AppointmentStatus.COMPLETED, db)
