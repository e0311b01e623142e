"""Distributed cache backend on Redis."""

from __future__ import annotations

import pickle
from datetime import timedelta
from typing import Any

import structlog
from redis.asyncio import Redis
from redis.exceptions import RedisError

from booking_core.cache.base import DEFAULT_TTL, CacheStore

logger = structlog.get_logger()

SCAN_BATCH_SIZE = 500


class RedisCacheStore(CacheStore):
    """Cache backed by a shared Redis instance.

    Values are pickled on write and unpickled on read. Pattern removal
    uses ``SCAN MATCH`` on the server followed by ``DEL`` of the matching
    keys. Thread-safety is delegated to Redis. Every Redis or
    (de)serialization failure is logged and treated as a miss or a no-op.

    Args:
        redis: Async Redis client. Its socket timeouts bound every call.
        key_prefix: Instance name prepended to every physical key so that
            several deployments can share one Redis database.
    """

    def __init__(
        self,
        redis: Redis,
        *,
        key_prefix: str = "",
        enabled: bool = True,
        default_ttl: timedelta = DEFAULT_TTL,
    ) -> None:
        super().__init__(enabled=enabled, default_ttl=default_ttl)
        self._redis = redis
        self._key_prefix = key_prefix

    @classmethod
    def from_url(
        cls,
        url: str,
        *,
        timeout_seconds: float = 2.0,
        key_prefix: str = "",
        enabled: bool = True,
        default_ttl: timedelta = DEFAULT_TTL,
    ) -> RedisCacheStore:
        """Create a store with its own connection pool."""
        client = Redis.from_url(
            url,
            socket_timeout=timeout_seconds,
            socket_connect_timeout=timeout_seconds,
        )
        return cls(
            client, key_prefix=key_prefix, enabled=enabled, default_ttl=default_ttl
        )

    def _physical(self, key: str) -> str:
        return f"{self._key_prefix}{key}"

    async def get(self, key: str) -> Any | None:
        physical = self._physical(key)
        try:
            data = await self._redis.get(physical)
        except RedisError as exc:
            logger.warning("cache_get_failed", cache_key=physical, error=str(exc))
            return None

        if data is None:
            return None
        try:
            return pickle.loads(data)
        except Exception as exc:
            logger.error(
                "cache_deserialize_failed",
                cache_key=physical,
                error_type=type(exc).__name__,
            )
            return None

    async def set(self, key: str, value: Any, ttl: timedelta | None = None) -> None:
        if value is None:
            return
        physical = self._physical(key)
        try:
            data = pickle.dumps(value, protocol=pickle.HIGHEST_PROTOCOL)
        except Exception as exc:
            logger.error(
                "cache_serialize_failed",
                cache_key=physical,
                error_type=type(exc).__name__,
            )
            return

        ttl_ms = max(int(self._effective_ttl(ttl).total_seconds() * 1000), 1)
        try:
            await self._redis.set(physical, data, px=ttl_ms)
        except RedisError as exc:
            logger.warning("cache_set_failed", cache_key=physical, error=str(exc))
            return
        logger.debug("cache_set", cache_key=physical, ttl_ms=ttl_ms)

    async def remove(self, key: str) -> None:
        physical = self._physical(key)
        try:
            await self._redis.delete(physical)
        except RedisError as exc:
            logger.warning("cache_remove_failed", cache_key=physical, error=str(exc))
            return
        logger.info("cache_key_removed", cache_key=physical)

    async def remove_by_pattern(self, pattern: str) -> None:
        physical = self._physical(pattern)
        removed = 0
        try:
            batch: list[Any] = []
            async for key in self._redis.scan_iter(match=physical, count=SCAN_BATCH_SIZE):
                batch.append(key)
                if len(batch) >= SCAN_BATCH_SIZE:
                    removed += await self._redis.delete(*batch)
                    batch = []
            if batch:
                removed += await self._redis.delete(*batch)
        except RedisError as exc:
            logger.warning("cache_pattern_remove_failed", pattern=physical, error=str(exc))
            return
        logger.info("cache_pattern_removed", pattern=physical, keys_removed=removed)

    async def exists(self, key: str) -> bool:
        physical = self._physical(key)
        try:
            return bool(await self._redis.exists(physical))
        except RedisError as exc:
            logger.warning("cache_exists_failed", cache_key=physical, error=str(exc))
            return False

    async def ping(self) -> bool:
        try:
            return bool(await self._redis.ping())
        except RedisError:
            return False

    async def close(self) -> None:
        await self._redis.aclose()
