"""Fixed-window, in-memory request rate limiting."""

import logging
import math
import time
from threading import Lock
from typing import Callable

from fastapi import HTTPException, Request, status

from ashram.core import config


logger = logging.getLogger(__name__)


class RateLimiter:
    """Allow ``limit`` hits per key in each ``window_seconds`` window.

    Instances are FastAPI dependencies keyed by route path and client host.
    """

    def __init__(self, limit: int, window_seconds: int, clock: Callable[[], float] = time.monotonic):
        self.limit = limit
        self.window_seconds = window_seconds
        self._clock = clock
        # key -> (window reset time, hits in window)
        self._windows: dict[str, tuple[float, int]] = {}
        self._lock = Lock()
        self._last_sweep = clock()

    def _sweep(self, now: float) -> None:
        expired = [key for key, (reset_at, _) in self._windows.items() if reset_at <= now]
        for key in expired:
            del self._windows[key]
        self._last_sweep = now

    def hit(self, key: str) -> int:
        now = self._clock()
        with self._lock:
            if now - self._last_sweep >= self.window_seconds:
                self._sweep(now)

            reset_at, count = self._windows.get(key, (0.0, 0))
            if now >= reset_at:
                reset_at, count = now + self.window_seconds, 0

            if count >= self.limit:
                retry_after = max(1, math.ceil(reset_at - now))
                logger.warning('Rate limit exceeded for %s', key)
                raise HTTPException(
                    status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                    detail='Too many requests. Please try again later.',
                    headers={'Retry-After': str(retry_after)},
                )

            self._windows[key] = (reset_at, count + 1)
            return self.limit - count - 1

    def reset(self) -> None:
        with self._lock:
            self._windows.clear()

    def __call__(self, request: Request) -> None:
        client_host = request.client.host if request.client else 'anonymous'
        self.hit(f'{request.url.path}:{client_host}')


booking_rate_limiter = RateLimiter(config.BOOKING_RATE_LIMIT, config.BOOKING_RATE_WINDOW_SECONDS)
