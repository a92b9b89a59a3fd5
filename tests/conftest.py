import os
from datetime import datetime

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

os.environ.setdefault('DATABASE_URL', 'sqlite:///:memory:')

from ashram.cache import memory_cache  # noqa: E402
from ashram.database import Base  # noqa: E402
from ashram.models.appointment import Appointment  # noqa: E402
from ashram.models.enums import AppointmentStatus, Role  # noqa: E402
from ashram.models.user import User  # noqa: E402
from ashram.rate_limiter import booking_rate_limiter  # noqa: E402


@pytest.fixture
def db():
    engine = create_engine(
        'sqlite://',
        connect_args={'check_same_thread': False},
        poolclass=StaticPool,
    )
    testing_session_local = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    Base.metadata.create_all(bind=engine)

    session = testing_session_local()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture(autouse=True)
def reset_process_state():
    memory_cache.clear()
    booking_rate_limiter.reset()
    yield
    memory_cache.clear()
    booking_rate_limiter.reset()


@pytest.fixture
def make_user(db):
    def _make_user(name: str, role: Role = Role.USER, **fields) -> User:
        user = User(name=name, email=f'{name.lower().replace(" ", ".")}@example.org', role=role, **fields)
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make_user


@pytest.fixture
def guruji(make_user) -> User:
    return make_user('Shivgoraksha', role=Role.GURUJI, created_at=datetime(2024, 1, 1))


@pytest.fixture
def devotee(make_user) -> User:
    return make_user('Asha Devi')


@pytest.fixture
def make_appointment(db, guruji, devotee):
    def _make_appointment(
        start_time: datetime,
        end_time: datetime,
        status: AppointmentStatus = AppointmentStatus.BOOKED,
        **fields,
    ) -> Appointment:
        values = {
            'user_id': devotee.id,
            'guruji_id': guruji.id,
            'date': start_time.date(),
            'start_time': start_time,
            'end_time': end_time,
            'status': status,
        }
        values.update(fields)
        appointment = Appointment(**values)
        db.add(appointment)
        db.commit()
        db.refresh(appointment)
        return appointment

    return _make_appointment
