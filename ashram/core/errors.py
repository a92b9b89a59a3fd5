"""Domain errors raised by the repositories and the scheduling core.

Persistence failures are not wrapped: ``sqlalchemy.exc.SQLAlchemyError``
propagates unchanged so callers can tell an unreachable database apart
from a rejected booking.
"""


class SchedulingError(Exception):
    """Base class for errors a request handler turns into a client response."""


class RecordNotFoundError(SchedulingError):
    def __init__(self, model_name: str, record_id: str):
        self.model_name = model_name
        self.record_id = record_id
        super().__init__(f'{model_name} {record_id} not found.')


class AppointmentNotFoundError(RecordNotFoundError):
    def __init__(self, record_id: str):
        super().__init__('Appointment', record_id)


class AppointmentValidationError(SchedulingError):
    """Malformed interval, missing guruji or an out-of-range slot request."""


class SlotUnavailableError(SchedulingError):
    def __init__(self, conflicts=None):
        self.conflicts = list(conflicts or [])
        super().__init__('Appointment time slot is not available')


class InvalidStatusTransitionError(SchedulingError):
    def __init__(self, current, requested):
        self.current = current
        self.requested = requested
        super().__init__(f'Cannot move appointment from {current.value} to {requested.value}.')
