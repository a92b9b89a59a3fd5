import enum


class Role(str, enum.Enum):
    ADMIN = 'ADMIN'
    COORDINATOR = 'COORDINATOR'
    GURUJI = 'GURUJI'
    USER = 'USER'


class AppointmentStatus(str, enum.Enum):
    BOOKED = 'BOOKED'
    CONFIRMED = 'CONFIRMED'
    CHECKED_IN = 'CHECKED_IN'
    IN_PROGRESS = 'IN_PROGRESS'
    COMPLETED = 'COMPLETED'
    CANCELLED = 'CANCELLED'
    NO_SHOW = 'NO_SHOW'


class Priority(str, enum.Enum):
    LOW = 'LOW'
    NORMAL = 'NORMAL'
    HIGH = 'HIGH'
    URGENT = 'URGENT'


class QueueStatus(str, enum.Enum):
    WAITING = 'WAITING'
    IN_PROGRESS = 'IN_PROGRESS'
    COMPLETED = 'COMPLETED'
    CANCELLED = 'CANCELLED'


# Statuses that no longer hold their time slot.
INACTIVE_STATUSES = (AppointmentStatus.CANCELLED, AppointmentStatus.NO_SHOW)
