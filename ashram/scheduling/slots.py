"""
Availability slot generation for UI display.

Slots are cut from business hours at a fixed duration and marked blocked
when any active appointment of the guruji overlaps them, using the same
half-open test as conflict detection.
"""

from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Iterator

from sqlalchemy.orm import Session

from ashram.core import config
from ashram.core.errors import AppointmentValidationError
from ashram.repositories.appointment import AppointmentRepository
from ashram.scheduling.overlap import day_bounds, intervals_overlap


@dataclass(frozen=True)
class AvailabilitySlot:
    date: date
    start_time: datetime
    end_time: datetime
    is_available: bool
    guruji_id: str


def business_hours(day: date) -> tuple[datetime, datetime]:
    day_start, _ = day_bounds(day)
    return (
        day_start + timedelta(hours=config.BUSINESS_START_HOUR),
        day_start + timedelta(hours=config.BUSINESS_END_HOUR),
    )


def iterate_slot_bounds(day: date, slot_duration_minutes: int) -> Iterator[tuple[datetime, datetime]]:
    opening, closing = business_hours(day)
    step = timedelta(minutes=slot_duration_minutes)
    current = opening

    while current + step <= closing:
        yield current, current + step
        current += step


def validate_slot_duration(slot_duration_minutes: int) -> None:
    business_minutes = (config.BUSINESS_END_HOUR - config.BUSINESS_START_HOUR) * 60
    if isinstance(slot_duration_minutes, bool) or not isinstance(slot_duration_minutes, int):
        raise AppointmentValidationError('Slot duration must be a whole number of minutes.')
    if not 0 < slot_duration_minutes <= business_minutes:
        raise AppointmentValidationError(
            f'Slot duration must be between 1 and {business_minutes} minutes.'
        )


def get_available_slots(
    guruji_id: str,
    day: date,
    db: Session,
    slot_duration_minutes: int = config.DEFAULT_SLOT_DURATION_MINUTES,
) -> list[AvailabilitySlot]:
    if not guruji_id:
        raise AppointmentValidationError('A guruji is required to list availability.')
    validate_slot_duration(slot_duration_minutes)

    appointments = AppointmentRepository(db).find_active_for_day(guruji_id, day)

    slots: list[AvailabilitySlot] = []
    for slot_start, slot_end in iterate_slot_bounds(day, slot_duration_minutes):
        is_blocked = any(
            intervals_overlap(slot_start, slot_end, appointment.start_time, appointment.end_time)
            for appointment in appointments
        )
        slots.append(
            AvailabilitySlot(
                date=day,
                start_time=slot_start,
                end_time=slot_end,
                is_available=not is_blocked,
                guruji_id=guruji_id,
            )
        )

    return slots
