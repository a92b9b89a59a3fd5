"""User model definitions."""

import uuid
from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, Enum, String

from ashram.database import Base
from ashram.models.enums import Role


class User(Base):
    """Represents an application user. Gurujis are users with the GURUJI role."""
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    name = Column(String)
    email = Column(String, unique=True, index=True)
    phone = Column(String, unique=True)
    role = Column(Enum(Role, native_enum=False, length=16), nullable=False, default=Role.USER)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, nullable=False, default=datetime.now)
    updated_at = Column(DateTime, nullable=False, default=datetime.now, onupdate=datetime.now)
