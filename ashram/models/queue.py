"""Queue and consultation model definitions."""

import uuid
from datetime import datetime

from sqlalchemy import Column, DateTime, Enum, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship

from ashram.database import Base
from ashram.models.enums import Priority, QueueStatus


class QueueEntry(Base):
    """A checked-in appointment waiting to be seen."""
    __tablename__ = "queue_entries"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    appointment_id = Column(String(36), ForeignKey("appointments.id"), nullable=False, unique=True)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False)
    guruji_id = Column(String(36), ForeignKey("users.id"))
    position = Column(Integer, nullable=False)
    status = Column(Enum(QueueStatus, native_enum=False, length=16), nullable=False, default=QueueStatus.WAITING)
    priority = Column(Enum(Priority, native_enum=False, length=16), nullable=False, default=Priority.NORMAL)
    estimated_wait = Column(Integer)
    checked_in_at = Column(DateTime, nullable=False, default=datetime.now)
    started_at = Column(DateTime)
    completed_at = Column(DateTime)
    notes = Column(Text)
    created_at = Column(DateTime, nullable=False, default=datetime.now)
    updated_at = Column(DateTime, nullable=False, default=datetime.now, onupdate=datetime.now)

    appointment = relationship("Appointment", back_populates="queue_entry")


class ConsultationSession(Base):
    """A guruji's consultation record for one appointment."""
    __tablename__ = "consultation_sessions"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    appointment_id = Column(String(36), ForeignKey("appointments.id"), nullable=False, unique=True)
    guruji_id = Column(String(36), ForeignKey("users.id"), nullable=False)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False)
    start_time = Column(DateTime, nullable=False, default=datetime.now)
    end_time = Column(DateTime)
    duration = Column(Integer)  # minutes
    symptoms = Column(Text)
    diagnosis = Column(Text)
    notes = Column(Text)
    created_at = Column(DateTime, nullable=False, default=datetime.now)
    updated_at = Column(DateTime, nullable=False, default=datetime.now, onupdate=datetime.now)

    appointment = relationship("Appointment", back_populates="consultation_session")
