"""Tenant-namespaced cache: store contract, backends, key builder.

Quick start::

    from booking_core.cache import create_cache_store

    store = create_cache_store(get_settings())
    cache = store.scoped(tenant_context)
    value = await cache.get_or_create("appointments_list", compute)
"""

from booking_core.cache.base import CacheStore, TenantCache
from booking_core.cache.factory import create_cache_store
from booking_core.cache.keys import TenantKeyNamespacer
from booking_core.cache.memory import MemoryCacheStore
from booking_core.cache.redis import RedisCacheStore

__all__ = [
    "CacheStore",
    "MemoryCacheStore",
    "RedisCacheStore",
    "TenantCache",
    "TenantKeyNamespacer",
    "create_cache_store",
]
