"""
Conflict detection between appointments of the same guruji.

Intervals are half-open: ``[start, end)``. Two intervals conflict when each
starts before the other ends, so back-to-back appointments (one ending at
10:30, the next starting at 10:30) never conflict.
"""

from datetime import date, datetime, time, timedelta

from sqlalchemy.orm import Session

from ashram.core.errors import AppointmentValidationError
from ashram.models.appointment import Appointment
from ashram.repositories.appointment import AppointmentRepository, active_on_day


def intervals_overlap(start_a: datetime, end_a: datetime, start_b: datetime, end_b: datetime) -> bool:
    return start_a < end_b and start_b < end_a


def day_bounds(day: date) -> tuple[datetime, datetime]:
    day_start = datetime.combine(day, time.min)
    return day_start, day_start + timedelta(days=1)


def validate_interval(day: date, start_time: datetime, end_time: datetime) -> None:
    if start_time >= end_time:
        raise AppointmentValidationError('Appointment start time must be before its end time.')

    day_start, day_end = day_bounds(day)
    if start_time < day_start or end_time > day_end:
        raise AppointmentValidationError(f'Appointment must start and end on {day.isoformat()}.')


def find_conflicting_appointments(
    guruji_id: str,
    day: date,
    start_time: datetime,
    end_time: datetime,
    db: Session,
    exclude_id: str | None = None,
) -> list[Appointment]:
    """Return the guruji's active appointments on ``day`` that overlap the interval.

    Cancelled and no-show appointments never conflict. ``exclude_id`` leaves
    one appointment out, for re-checking an appointment being edited.
    """
    if not guruji_id:
        raise AppointmentValidationError('A guruji is required to check for conflicts.')
    validate_interval(day, start_time, end_time)

    filters = [
        *active_on_day(guruji_id, day),
        Appointment.start_time < end_time,
        Appointment.end_time > start_time,
    ]
    if exclude_id:
        filters.append(Appointment.id != exclude_id)

    return AppointmentRepository(db).find_many(filters, order_by=(Appointment.start_time.asc(),))
