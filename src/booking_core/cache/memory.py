"""In-process cache backend."""

from __future__ import annotations

import time
from dataclasses import dataclass
from datetime import timedelta
from fnmatch import fnmatchcase
from threading import Lock
from typing import Any

import structlog

from booking_core.cache.base import DEFAULT_TTL, CacheStore

logger = structlog.get_logger()


@dataclass(slots=True)
class _Entry:
    value: Any
    expires_at: float


class MemoryCacheStore(CacheStore):
    """Process-local cache keeping values by reference.

    Thread-safe via Lock. Single-instance only: entries are not shared
    between workers. The entry map doubles as the index of live keys that
    pattern removal scans. Expired entries read as misses and are dropped
    on access or by ``purge_expired()``.
    """

    def __init__(
        self,
        *,
        enabled: bool = True,
        default_ttl: timedelta = DEFAULT_TTL,
    ) -> None:
        super().__init__(enabled=enabled, default_ttl=default_ttl)
        self._entries: dict[str, _Entry] = {}
        self._lock = Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def _live_entry(self, key: str, now: float) -> _Entry | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if entry.expires_at <= now:
            del self._entries[key]
            return None
        return entry

    async def get(self, key: str) -> Any | None:
        with self._lock:
            entry = self._live_entry(key, time.monotonic())
            return None if entry is None else entry.value

    async def set(self, key: str, value: Any, ttl: timedelta | None = None) -> None:
        if value is None:
            return
        seconds = self._effective_ttl(ttl).total_seconds()
        with self._lock:
            self._entries[key] = _Entry(value, time.monotonic() + seconds)
        logger.debug("cache_set", cache_key=key, ttl_seconds=seconds)

    async def remove(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)

    async def remove_by_pattern(self, pattern: str) -> None:
        with self._lock:
            matching = [k for k in self._entries if fnmatchcase(k, pattern)]
            for key in matching:
                del self._entries[key]
        logger.info("cache_pattern_removed", pattern=pattern, keys_removed=len(matching))

    async def exists(self, key: str) -> bool:
        with self._lock:
            return self._live_entry(key, time.monotonic()) is not None

    def purge_expired(self) -> int:
        """Drop all expired entries. Call periodically.

        Returns:
            Number of entries removed.
        """
        now = time.monotonic()
        with self._lock:
            expired = [k for k, e in self._entries.items() if e.expires_at <= now]
            for key in expired:
                del self._entries[key]
        return len(expired)

    def clear(self) -> None:
        """Remove every entry of every tenant."""
        with self._lock:
            count = len(self._entries)
            self._entries.clear()
        logger.info("cache_cleared", keys_removed=count)
