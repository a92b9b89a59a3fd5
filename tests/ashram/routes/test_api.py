from datetime import date, datetime, time, timedelta

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.exc import OperationalError

from ashram.database import get_db
from ashram.main import app
from ashram.rate_limiter import booking_rate_limiter


def next_monday() -> str:
    today = date.today()
    return (today + timedelta(days=7 - today.weekday())).isoformat()


@pytest.fixture
def client(db, monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setattr('ashram.routes.appointment_routes.ensure_database_ready', lambda: None)

    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


def test_booking_flow_over_http(client, guruji, devotee) -> None:
    created = client.post(
        '/appointments',
        json={'user_id': devotee.id, 'date': next_monday(), 'time': '10:00:00', 'reason': 'Guidance'},
    )
    assert created.status_code == 201
    body = created.json()
    assert body['status'] == 'BOOKED'
    assert body['guruji_id'] == guruji.id

    overlapping = client.post(
        '/appointments',
        json={'user_id': devotee.id, 'date': next_monday(), 'time': '10:15:00'},
    )
    assert overlapping.status_code == 409

    checked_in = client.post('/appointments/check-in', json={'check_in_code': body['check_in_code'].lower()})
    assert checked_in.status_code == 200
    assert checked_in.json()['status'] == 'CHECKED_IN'

    fetched = client.get(f"/appointments/{body['id']}")
    assert fetched.json()['checked_in_at'] is not None


def test_availability_over_http(client, guruji) -> None:
    response = client.get('/appointments/availability', params={'date': next_monday(), 'slot_duration_minutes': 60})

    assert response.status_code == 200
    assert response.json()['total_slots'] == 9
    assert response.json()['available_count'] == 9


def test_invalid_status_value_is_rejected(client) -> None:
    response = client.patch('/appointments/some-id/status', json={'status': 'ARCHIVED'})

    assert response.status_code == 422


def test_booking_is_rate_limited(client, guruji, devotee, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(booking_rate_limiter, 'limit', 1)

    first = client.post('/appointments', json={'user_id': devotee.id, 'date': next_monday(), 'time': '09:00:00'})
    second = client.post('/appointments', json={'user_id': devotee.id, 'date': next_monday(), 'time': '11:00:00'})

    assert first.status_code == 201
    assert second.status_code == 429
    assert 'Retry-After' in second.headers


def test_health_reports_unreachable_database(client, monkeypatch: pytest.MonkeyPatch) -> None:
    def unreachable() -> bool:
        raise OperationalError('SELECT 1', {}, Exception('connection refused'))

    monkeypatch.setattr('ashram.main.ping_database', unreachable)

    response = client.get('/health')

    assert response.status_code == 503
    assert response.json()['detail'] == 'Database unavailable. Verify DATABASE_URL and database credentials.'


def test_booking_accepts_time_with_utc_offset(client, guruji, devotee) -> None:
    offset_time = time(12, 0, tzinfo=datetime.now().astimezone().tzinfo).isoformat()

    response = client.post('/appointments', json={'user_id': devotee.id, 'date': next_monday(), 'time': offset_time})

    assert response.status_code == 201
    assert response.json()['start_time'].startswith(f'{next_monday()}T')
