from datetime import date, datetime, time, timedelta

import pytest
from fastapi import HTTPException
from pydantic import ValidationError

from ashram.models.appointment import Appointment
from ashram.repositories.appointment import AppointmentRepository
from ashram.models.enums import AppointmentStatus, Priority
from ashram.routes.admin_routes import (
    BulkCancelRequest,
    BulkStatusRequest,
    appointment_stats,
    bulk_cancel,
    bulk_update_status,
    cleanup_cancelled,
    search_appointments,
)
from ashram.routes.appointment_routes import CreateAppointmentRequest, book_appointment

DAY = date(2030, 1, 7)


def at(hour: int, minute: int = 0) -> datetime:
    return datetime.combine(DAY, time(hour, minute))


@pytest.fixture(autouse=True)
def skip_schema_check(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr('ashram.routes.admin_routes.ensure_database_ready', lambda: None)
    monkeypatch.setattr('ashram.routes.appointment_routes.ensure_database_ready', lambda: None)


def test_bulk_requests_require_appointment_ids() -> None:
    with pytest.raises(ValidationError):
        BulkStatusRequest(appointment_ids=[], status=AppointmentStatus.CONFIRMED)
    with pytest.raises(ValidationError):
        BulkCancelRequest(appointment_ids=['a'], reason='x' * 501)


def test_search_appointments_returns_page_metadata(db, make_appointment) -> None:
    for hour in (9, 10, 11):
        make_appointment(at(hour), at(hour, 30), reason='Health consultation')
    make_appointment(at(12), at(12, 30), reason='Blessing')

    response = search_appointments(
        search='health',
        status=None,
        priority=None,
        guruji_id=None,
        user_id=None,
        date_from=DAY,
        date_to=DAY,
        page=1,
        limit=2,
        db=db,
    )

    assert response.total == 3
    assert (response.page, response.total_pages) == (1, 2)
    assert response.has_next is True
    assert response.has_prev is False
    assert [appointment.start_time for appointment in response.appointments] == [at(11), at(10)]


def test_appointment_stats_are_cached_until_an_appointment_changes(db, guruji, devotee, make_appointment) -> None:
    make_appointment(at(9), at(9, 30), priority=Priority.URGENT)

    first = appointment_stats(date_from=None, date_to=None, guruji_id=None, db=db)
    make_appointment(at(10), at(10, 30))
    cached = appointment_stats(date_from=None, date_to=None, guruji_id=None, db=db)

    monday = date.today() + timedelta(days=7 - date.today().weekday())
    book_appointment(CreateAppointmentRequest(user_id=devotee.id, date=monday, time=time(11)), db=db)
    refreshed = appointment_stats(date_from=None, date_to=None, guruji_id=None, db=db)

    assert first.total == 1
    assert first.by_priority['URGENT'] == 1
    assert cached.total == 1
    assert refreshed.total == 3


def test_bulk_status_and_cancel_report_counts(db, make_appointment) -> None:
    first = make_appointment(at(9), at(9, 30))
    second = make_appointment(at(10), at(10, 30))

    confirmed = bulk_update_status(
        BulkStatusRequest(appointment_ids=[first.id, second.id, 'missing-id'], status=AppointmentStatus.CONFIRMED),
        db=db,
    )
    cancelled = bulk_cancel(BulkCancelRequest(appointment_ids=[second.id], reason=' Guruji travelling '), db=db)

    db.expire_all()
    assert (confirmed.count, cancelled.count) == (2, 1)
    assert first.status == AppointmentStatus.CONFIRMED
    assert (second.status, second.notes) == (AppointmentStatus.CANCELLED, 'Guruji travelling')


def test_cleanup_cancelled_deletes_only_old_cancellations(db, make_appointment) -> None:
    long_ago = datetime.now() - timedelta(days=200)
    make_appointment(at(9), at(9, 30), status=AppointmentStatus.CANCELLED, updated_at=long_ago)
    make_appointment(at(10), at(10, 30), status=AppointmentStatus.CANCELLED)

    response = cleanup_cancelled(days_old=90, db=db)

    assert response.count == 1
    assert db.query(Appointment).count() == 1


def test_bulk_status_never_reactivates_a_rebooked_slot(db, guruji, make_appointment) -> None:
    cancelled = make_appointment(at(10), at(10, 30), status=AppointmentStatus.CANCELLED)
    rebooked = make_appointment(at(10), at(10, 30))

    response = bulk_update_status(
        BulkStatusRequest(appointment_ids=[cancelled.id, rebooked.id], status=AppointmentStatus.CONFIRMED),
        db=db,
    )

    db.expire_all()
    active = AppointmentRepository(db).find_active_for_day(guruji.id, DAY)
    assert response.count == 1
    assert cancelled.status == AppointmentStatus.CANCELLED
    assert [appointment.id for appointment in active] == [rebooked.id]


def test_bulk_status_moves_inactive_rows_between_inactive_statuses(db, make_appointment) -> None:
    cancelled = make_appointment(at(10), at(10, 30), status=AppointmentStatus.CANCELLED)

    response = bulk_update_status(
        BulkStatusRequest(appointment_ids=[cancelled.id], status=AppointmentStatus.NO_SHOW),
        db=db,
    )

    db.expire_all()
    assert response.count == 1
    assert cancelled.status == AppointmentStatus.NO_SHOW


@pytest.mark.parametrize(
    'status',
    [AppointmentStatus.BOOKED, AppointmentStatus.IN_PROGRESS, AppointmentStatus.COMPLETED],
)
def test_bulk_status_rejects_statuses_that_skip_check_in(db, make_appointment, status: AppointmentStatus) -> None:
    appointment = make_appointment(at(10), at(10, 30))

    with pytest.raises(HTTPException) as exception_info:
        bulk_update_status(BulkStatusRequest(appointment_ids=[appointment.id], status=status), db=db)

    db.expire_all()
    assert exception_info.value.status_code == 400
    assert exception_info.value.detail == f'Appointments cannot be bulk moved to {status.value}.'
    assert appointment.status == AppointmentStatus.BOOKED
    assert appointment.checked_in_at is None


def test_bulk_check_in_keeps_an_existing_check_in_time(db, make_appointment) -> None:
    arrived_at = datetime(2030, 1, 7, 9, 50)
    already_checked_in = make_appointment(
        at(10),
        at(10, 30),
        status=AppointmentStatus.CHECKED_IN,
        checked_in_at=arrived_at,
    )
    booked = make_appointment(at(11), at(11, 30))

    bulk_update_status(
        BulkStatusRequest(appointment_ids=[already_checked_in.id, booked.id], status=AppointmentStatus.CHECKED_IN),
        db=db,
    )

    db.expire_all()
    assert already_checked_in.checked_in_at == arrived_at
    assert booked.status == AppointmentStatus.CHECKED_IN
    assert booked.checked_in_at is not None
