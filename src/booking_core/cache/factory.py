"""Pick and build the configured cache backend."""

import structlog
from redis.asyncio import Redis

from booking_core.cache.base import CacheStore
from booking_core.cache.memory import MemoryCacheStore
from booking_core.cache.redis import RedisCacheStore
from booking_core.config import Settings

logger = structlog.get_logger()


def create_cache_store(settings: Settings, redis: Redis | None = None) -> CacheStore:
    """Build the cache store selected by ``cache_distributed_enabled``.

    Args:
        settings: Application settings.
        redis: Existing client to reuse. When omitted and the distributed
            backend is selected, a client is created from ``redis_url``.

    Returns:
        ``RedisCacheStore`` or ``MemoryCacheStore``.
    """
    default_ttl = settings.cache_default_expiration

    if not settings.cache_distributed_enabled:
        logger.info("cache_store_created", backend="memory", enabled=settings.cache_enabled)
        return MemoryCacheStore(enabled=settings.cache_enabled, default_ttl=default_ttl)

    if redis is None:
        store = RedisCacheStore.from_url(
            settings.redis_url,
            timeout_seconds=settings.cache_operation_timeout_seconds,
            key_prefix=settings.cache_instance_name,
            enabled=settings.cache_enabled,
            default_ttl=default_ttl,
        )
    else:
        store = RedisCacheStore(
            redis,
            key_prefix=settings.cache_instance_name,
            enabled=settings.cache_enabled,
            default_ttl=default_ttl,
        )
    logger.info("cache_store_created", backend="redis", enabled=settings.cache_enabled)
    return store
