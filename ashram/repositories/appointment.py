import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta

from sqlalchemy import func, or_, select
from sqlalchemy.orm import joinedload

from ashram.core import config
from ashram.core.errors import AppointmentValidationError
from ashram.models.appointment import Appointment
from ashram.models.enums import INACTIVE_STATUSES, AppointmentStatus, Priority
from ashram.models.user import User
from ashram.repositories.base import BaseRepository, PaginatedResult


logger = logging.getLogger(__name__)

UPCOMING_STATUSES = (AppointmentStatus.BOOKED, AppointmentStatus.CONFIRMED, AppointmentStatus.CHECKED_IN)
PENDING_STATUSES = (AppointmentStatus.BOOKED, AppointmentStatus.CONFIRMED)
BULK_STATUSES = (
    AppointmentStatus.CONFIRMED,
    AppointmentStatus.CHECKED_IN,
    AppointmentStatus.CANCELLED,
    AppointmentStatus.NO_SHOW,
)

_WITH_PARTICIPANTS = (joinedload(Appointment.user), joinedload(Appointment.guruji))


@dataclass
class AppointmentStats:
    total: int = 0
    by_status: dict[str, int] = field(default_factory=dict)
    by_priority: dict[str, int] = field(default_factory=dict)
    today_count: int = 0
    upcoming_count: int = 0
    completed_today: int = 0


def active_on_day(guruji_id: str, day: date) -> list:
    """Criteria for the appointments that hold a guruji's time on ``day``."""
    return [
        Appointment.guruji_id == guruji_id,
        Appointment.date == day,
        Appointment.status.not_in(INACTIVE_STATUSES),
    ]


def _date_range(date_from: date | None, date_to: date | None) -> list:
    filters = []
    if date_from:
        filters.append(Appointment.date >= date_from)
    if date_to:
        filters.append(Appointment.date <= date_to)
    return filters


class AppointmentRepository(BaseRepository[Appointment]):
    model = Appointment

    def find_by_id_with_relations(self, appointment_id: str) -> Appointment | None:
        return self.find_by_id(
            appointment_id,
            options=(
                *_WITH_PARTICIPANTS,
                joinedload(Appointment.queue_entry),
                joinedload(Appointment.consultation_session),
            ),
        )

    def find_by_check_in_code(self, code: str) -> Appointment | None:
        with self._operation('find_by_check_in_code'):
            return self._query((Appointment.check_in_code == code,), _WITH_PARTICIPANTS).first()

    def find_by_user_id(self, user_id: str, **kwargs) -> list[Appointment]:
        filters = [Appointment.user_id == user_id, *kwargs.pop('filters', ())]
        return self.find_many(filters, **kwargs)

    def find_by_guruji_id(self, guruji_id: str, **kwargs) -> list[Appointment]:
        filters = [Appointment.guruji_id == guruji_id, *kwargs.pop('filters', ())]
        return self.find_many(filters, **kwargs)

    def find_by_status(self, status: AppointmentStatus, **kwargs) -> list[Appointment]:
        filters = [Appointment.status == status, *kwargs.pop('filters', ())]
        return self.find_many(filters, **kwargs)

    def find_by_date_range(self, start_date: date, end_date: date, **kwargs) -> list[Appointment]:
        filters = [*_date_range(start_date, end_date), *kwargs.pop('filters', ())]
        return self.find_many(filters, **kwargs)

    def find_active_for_day(self, guruji_id: str, day: date) -> list[Appointment]:
        return self.find_many(active_on_day(guruji_id, day), order_by=(Appointment.start_time.asc(),))

    def find_today_appointments(self, guruji_id: str | None = None) -> list[Appointment]:
        filters = [Appointment.date == date.today()]
        if guruji_id:
            filters.append(Appointment.guruji_id == guruji_id)
        return self.find_many(
            filters,
            order_by=(Appointment.start_time.asc(),),
            options=(*_WITH_PARTICIPANTS, joinedload(Appointment.queue_entry)),
        )

    def find_upcoming_appointments(
        self,
        user_id: str,
        days: int = config.UPCOMING_WINDOW_DAYS,
    ) -> list[Appointment]:
        now = datetime.now()
        return self.find_many(
            [
                Appointment.user_id == user_id,
                Appointment.start_time >= now,
                Appointment.date <= (now + timedelta(days=days)).date(),
                Appointment.status.in_(UPCOMING_STATUSES),
            ],
            order_by=(Appointment.date.asc(), Appointment.start_time.asc()),
            options=(joinedload(Appointment.guruji),),
        )

    def search_appointments(
        self,
        search: str | None = None,
        status: AppointmentStatus | None = None,
        priority: Priority | None = None,
        guruji_id: str | None = None,
        user_id: str | None = None,
        date_from: date | None = None,
        date_to: date | None = None,
        page: int = 1,
        limit: int = 20,
    ) -> PaginatedResult[Appointment]:
        filters = _date_range(date_from, date_to)
        if status:
            filters.append(Appointment.status == status)
        if priority:
            filters.append(Appointment.priority == priority)
        if guruji_id:
            filters.append(Appointment.guruji_id == guruji_id)
        if user_id:
            filters.append(Appointment.user_id == user_id)

        search = (search or '').strip()
        if search:
            pattern = f'%{search}%'
            matching_users = select(User.id).where(User.name.ilike(pattern))
            filters.append(
                or_(
                    Appointment.user_id.in_(matching_users),
                    Appointment.guruji_id.in_(matching_users),
                    Appointment.reason.ilike(pattern),
                )
            )

        return self.find_many_with_pagination(
            page,
            limit,
            filters,
            order_by=(Appointment.date.desc(), Appointment.start_time.desc()),
            options=_WITH_PARTICIPANTS,
        )

    def _distribution(self, column, members, filters: list) -> dict[str, int]:
        with self._operation('distribution'):
            rows = (
                self.db.query(column, func.count(Appointment.id))
                .filter(*filters)
                .group_by(column)
                .all()
            )
        counts = {member.value: 0 for member in members}
        for value, total in rows:
            counts[value.value] = total
        return counts

    def get_appointment_stats(
        self,
        date_from: date | None = None,
        date_to: date | None = None,
        guruji_id: str | None = None,
    ) -> AppointmentStats:
        filters = _date_range(date_from, date_to)
        scope = [Appointment.guruji_id == guruji_id] if guruji_id else []
        filters.extend(scope)
        today = date.today()

        return AppointmentStats(
            total=self.count(filters),
            by_status=self._distribution(Appointment.status, AppointmentStatus, filters),
            by_priority=self._distribution(Appointment.priority, Priority, filters),
            today_count=self.count([*scope, Appointment.date == today]),
            upcoming_count=self.count(
                [*scope, Appointment.start_time >= datetime.now(), Appointment.status.in_(PENDING_STATUSES)]
            ),
            completed_today=self.count(
                [*scope, Appointment.date == today, Appointment.status == AppointmentStatus.COMPLETED]
            ),
        )

    def bulk_update_status(self, appointment_ids: list[str], status: AppointmentStatus) -> int:
        """Move the given appointments to ``status`` without the transition table.

        Cancelled and no-show rows only move between inactive statuses.
        Targets past CHECKED_IN are refused; an existing check-in time is kept.
        """
        if status not in BULK_STATUSES:
            raise AppointmentValidationError(f'Appointments cannot be bulk moved to {status.value}.')

        filters = [Appointment.id.in_(appointment_ids)]
        data = {'status': status}
        if status not in INACTIVE_STATUSES:
            filters.append(Appointment.status.not_in(INACTIVE_STATUSES))
        if status == AppointmentStatus.CHECKED_IN:
            data['checked_in_at'] = func.coalesce(Appointment.checked_in_at, datetime.now())
        count = self.update_many(filters, data)
        logger.info('Bulk moved %s appointments to %s', count, status.value)
        return count

    def bulk_cancel(self, appointment_ids: list[str], reason: str | None = None) -> int:
        data = {'status': AppointmentStatus.CANCELLED}
        if reason:
            data['notes'] = reason
        count = self.update_many([Appointment.id.in_(appointment_ids)], data)
        logger.info('Bulk cancelled %s appointments', count)
        return count

    def delete_old_cancelled_appointments(self, days_old: int = 90) -> int:
        cutoff = datetime.now() - timedelta(days=days_old)
        count = self.delete_many(
            [Appointment.status == AppointmentStatus.CANCELLED, Appointment.updated_at < cutoff]
        )
        logger.info('Deleted %s cancelled appointments older than %s days', count, days_old)
        return count
