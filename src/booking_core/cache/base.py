"""Cache store contract and the tenant-scoped view used by the pipeline."""

from __future__ import annotations

import abc
from collections.abc import Awaitable, Callable
from datetime import timedelta
from typing import Any

import structlog

from booking_core.cache.keys import TenantKeyNamespacer
from booking_core.tenancy.context import TenantContext

logger = structlog.get_logger()

CacheFactory = Callable[[], Awaitable[Any]]

DEFAULT_TTL = timedelta(minutes=30)


class CacheStore(abc.ABC):
    """Key/value store shared by all concurrent operations of a process.

    Keys given to a store are physical keys; tenant namespacing happens in
    ``TenantCache`` before they get here. ``None`` is never stored, so a
    ``None`` from ``get`` always means a miss. Backends log and swallow
    their own failures: a broken cache degrades to recomputation.
    """

    def __init__(
        self,
        *,
        enabled: bool = True,
        default_ttl: timedelta = DEFAULT_TTL,
    ) -> None:
        self._enabled = enabled
        self._default_ttl = default_ttl

    @property
    def enabled(self) -> bool:
        return self._enabled

    @property
    def default_ttl(self) -> timedelta:
        return self._default_ttl

    def _effective_ttl(self, ttl: timedelta | None) -> timedelta:
        return ttl if ttl is not None else self._default_ttl

    async def get_or_create(
        self,
        key: str,
        factory: CacheFactory,
        ttl: timedelta | None = None,
        bypass: bool = False,
    ) -> Any:
        """Read-through lookup.

        With ``bypass`` (or caching disabled) the factory always runs; its
        result is stored only when not bypassing. Otherwise a hit is
        returned without calling the factory, and a non-null miss result is
        stored for ``ttl``. Factory exceptions propagate unchanged.
        """
        if bypass or not self._enabled:
            fresh = await factory()
            if not bypass and fresh is not None:
                await self.set(key, fresh, ttl)
            return fresh

        cached = await self.get(key)
        if cached is not None:
            logger.debug("cache_hit", cache_key=key)
            return cached

        logger.debug("cache_miss", cache_key=key)
        value = await factory()
        if value is not None:
            await self.set(key, value, ttl)
        return value

    @abc.abstractmethod
    async def get(self, key: str) -> Any | None:
        """Return the cached value, or ``None`` on miss or failure."""

    @abc.abstractmethod
    async def set(self, key: str, value: Any, ttl: timedelta | None = None) -> None:
        """Store ``value`` under ``key`` for ``ttl`` (default expiration if None)."""

    @abc.abstractmethod
    async def remove(self, key: str) -> None:
        """Remove a single key. Missing keys are ignored."""

    @abc.abstractmethod
    async def remove_by_pattern(self, pattern: str) -> None:
        """Remove every key matching a glob pattern."""

    @abc.abstractmethod
    async def exists(self, key: str) -> bool:
        """Whether a live entry exists for ``key``."""

    async def ping(self) -> bool:
        """Connectivity check for health endpoints."""
        return True

    async def close(self) -> None:
        """Release backend resources."""

    def scoped(self, context: TenantContext) -> TenantCache:
        """View of this store whose keys are namespaced for ``context``."""
        return TenantCache(self, TenantKeyNamespacer(context))


class TenantCache:
    """Operation-scoped cache view.

    Every key and pattern goes through ``TenantKeyNamespacer`` before it
    reaches the shared store, so callers only ever deal in base keys.
    """

    PATTERN_SEPARATOR = "|"

    def __init__(self, store: CacheStore, namespacer: TenantKeyNamespacer) -> None:
        self._store = store
        self._namespacer = namespacer

    @property
    def namespacer(self) -> TenantKeyNamespacer:
        return self._namespacer

    async def get_or_create(
        self,
        key: str,
        factory: CacheFactory,
        ttl: timedelta | None = None,
        bypass: bool = False,
    ) -> Any:
        return await self._store.get_or_create(
            self._namespacer.build_key(key), factory, ttl, bypass
        )

    async def get(self, key: str) -> Any | None:
        return await self._store.get(self._namespacer.build_key(key))

    async def set(self, key: str, value: Any, ttl: timedelta | None = None) -> None:
        await self._store.set(self._namespacer.build_key(key), value, ttl)

    async def remove(self, key: str) -> None:
        await self._store.remove(self._namespacer.build_key(key))

    async def remove_by_pattern(self, pattern: str) -> None:
        """Remove by one or more ``|``-separated base patterns."""
        for part in pattern.split(self.PATTERN_SEPARATOR):
            part = part.strip()
            if part:
                await self._store.remove_by_pattern(
                    self._namespacer.build_pattern(part)
                )

    async def exists(self, key: str) -> bool:
        return await self._store.exists(self._namespacer.build_key(key))
