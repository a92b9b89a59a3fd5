import pytest
from fastapi import HTTPException
from starlette.requests import Request

from ashram.rate_limiter import RateLimiter


class FakeClock:
    def __init__(self) -> None:
        self.now = 500.0

    def __call__(self) -> float:
        return self.now


def make_request(path: str, host: str) -> Request:
    return Request({'type': 'http', 'method': 'POST', 'path': path, 'headers': [], 'client': (host, 5000)})


def test_hits_beyond_limit_are_rejected_with_retry_after() -> None:
    clock = FakeClock()
    limiter = RateLimiter(limit=2, window_seconds=60, clock=clock)

    assert limiter.hit('client') == 1
    assert limiter.hit('client') == 0

    clock.now += 15
    with pytest.raises(HTTPException) as exception_info:
        limiter.hit('client')

    assert exception_info.value.status_code == 429
    assert exception_info.value.detail == 'Too many requests. Please try again later.'
    assert exception_info.value.headers == {'Retry-After': '45'}


def test_window_resets_after_it_elapses() -> None:
    clock = FakeClock()
    limiter = RateLimiter(limit=1, window_seconds=60, clock=clock)
    limiter.hit('client')

    clock.now += 60

    assert limiter.hit('client') == 0


def test_keys_are_counted_separately_and_reset_clears_them() -> None:
    limiter = RateLimiter(limit=1, window_seconds=60, clock=FakeClock())
    limiter.hit('first')
    limiter.hit('second')

    with pytest.raises(HTTPException):
        limiter.hit('first')

    limiter.reset()
    assert limiter.hit('first') == 0


def test_dependency_keys_by_path_and_client_host() -> None:
    limiter = RateLimiter(limit=1, window_seconds=60, clock=FakeClock())

    limiter(make_request('/appointments', '10.0.0.1'))
    limiter(make_request('/appointments', '10.0.0.2'))

    with pytest.raises(HTTPException):
        limiter(make_request('/appointments', '10.0.0.1'))


def test_expired_windows_are_swept_once_per_window() -> None:
    clock = FakeClock()
    limiter = RateLimiter(limit=5, window_seconds=60, clock=clock)
    for index in range(1000):
        limiter.hit(f'/appointments:10.0.{index // 256}.{index % 256}')

    clock.now += 30
    limiter.hit('/appointments:10.1.0.1')
    assert len(limiter._windows) == 1001

    clock.now += 3600
    limiter.hit('/appointments:10.1.0.2')

    assert list(limiter._windows) == ['/appointments:10.1.0.2']
