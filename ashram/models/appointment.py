"""Appointment model definitions."""

import uuid
from datetime import datetime

from sqlalchemy import JSON, Boolean, Column, Date, DateTime, Enum, ForeignKey, String, Text
from sqlalchemy.orm import relationship

from ashram.database import Base
from ashram.models.enums import AppointmentStatus, Priority
from ashram.models.queue import ConsultationSession, QueueEntry  # noqa: F401
from ashram.models.user import User  # noqa: F401


class Appointment(Base):
    """Represents a scheduled appointment with a guruji."""
    __tablename__ = "appointments"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    guruji_id = Column(String(36), ForeignKey("users.id"), index=True)
    date = Column(Date, nullable=False)
    start_time = Column(DateTime, nullable=False)
    end_time = Column(DateTime, nullable=False)
    status = Column(
        Enum(AppointmentStatus, native_enum=False, length=16),
        nullable=False,
        default=AppointmentStatus.BOOKED,
    )
    priority = Column(Enum(Priority, native_enum=False, length=16), nullable=False, default=Priority.NORMAL)
    reason = Column(Text)
    notes = Column(Text)
    is_recurring = Column(Boolean, nullable=False, default=False)
    recurring_pattern = Column(JSON)
    check_in_code = Column(String(64), unique=True)
    checked_in_at = Column(DateTime)
    created_at = Column(DateTime, nullable=False, default=datetime.now)
    updated_at = Column(DateTime, nullable=False, default=datetime.now, onupdate=datetime.now)

    user = relationship("User", foreign_keys=[user_id])
    guruji = relationship("User", foreign_keys=[guruji_id])
    queue_entry = relationship("QueueEntry", back_populates="appointment", uselist=False)
    consultation_session = relationship("ConsultationSession", back_populates="appointment", uselist=False)
