"""
In-process TTL cache with tag-based invalidation.

Values live in a dict keyed by string; each entry carries an expiry and an
optional set of tags so writes can drop every dependent entry at once::

    memory_cache.set('stats:all', stats, TTL_SHORT, tags=(TAG_APPOINTMENTS,))
    memory_cache.invalidate_by_tag(TAG_APPOINTMENTS)
"""

import logging
import time
from dataclasses import dataclass
from threading import Lock
from typing import Any, Callable, Iterable


logger = logging.getLogger(__name__)


TAG_APPOINTMENTS = 'appointments'
TAG_GURUJI = 'guruji'

TTL_SHORT = 60
TTL_MEDIUM = 300
TTL_LONG = 1800

CLEANUP_INTERVAL_SECONDS = 300


@dataclass
class _Entry:
    value: Any
    expiry: float
    tags: frozenset[str]


class MemoryCache:
    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._entries: dict[str, _Entry] = {}
        self._lock = Lock()
        self._last_cleanup = clock()

    def set(self, key: str, value: Any, ttl_seconds: float = TTL_MEDIUM, tags: Iterable[str] = ()) -> None:
        now = self._clock()
        with self._lock:
            if now - self._last_cleanup >= CLEANUP_INTERVAL_SECONDS:
                self._cleanup()
            self._entries[key] = _Entry(value, now + ttl_seconds, frozenset(tags))

    def _live_entry(self, key: str) -> _Entry | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if self._clock() > entry.expiry:
            del self._entries[key]
            return None
        return entry

    def get(self, key: str, default: Any = None) -> Any:
        with self._lock:
            entry = self._live_entry(key)
        return default if entry is None else entry.value

    def has(self, key: str) -> bool:
        with self._lock:
            return self._live_entry(key) is not None

    def delete(self, key: str) -> bool:
        with self._lock:
            return self._entries.pop(key, None) is not None

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def keys(self) -> list[str]:
        with self._lock:
            self._cleanup()
            return list(self._entries)

    def invalidate_by_tag(self, tag: str) -> int:
        with self._lock:
            stale = [key for key, entry in self._entries.items() if tag in entry.tags]
            for key in stale:
                del self._entries[key]
        if stale:
            logger.debug('Invalidated %s cache entries tagged %s', len(stale), tag)
        return len(stale)

    def get_or_set(
        self,
        key: str,
        loader: Callable[[], Any],
        ttl_seconds: float = TTL_MEDIUM,
        tags: Iterable[str] = (),
    ) -> Any:
        """Return the cached value, loading and storing it on a miss.

        ``None`` results are not cached so a missing record is looked up
        again on the next call.
        """
        with self._lock:
            entry = self._live_entry(key)
        if entry is not None:
            return entry.value

        value = loader()
        if value is not None:
            self.set(key, value, ttl_seconds, tags)
        return value

    def get_stats(self) -> dict[str, int]:
        with self._lock:
            self._cleanup()
            return {'size': len(self._entries)}

    def _cleanup(self) -> None:
        now = self._clock()
        self._last_cleanup = now
        for key in [key for key, entry in self._entries.items() if now > entry.expiry]:
            del self._entries[key]


memory_cache = MemoryCache()
