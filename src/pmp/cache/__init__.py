"""Cache stores keyed by (topic, date).

Two interchangeable backends implement the same CacheStore contract:
- MemoryCacheStore: process-lifetime dict, fed by the long-running consumer
- RedisCacheStore: durable Redis keys, fed by the bounded sync job

Usage:
    from pmp.cache import create_cache_store

    store = create_cache_store()          # backend from PMP_CACHE_BACKEND
    store.put("cables", "2026-02-28", payload)
    store.list_dates("cables")
"""

from pmp.cache.base import CacheEntry, CacheStore, Topic, is_valid_date
from pmp.cache.memory import MemoryCacheStore
from pmp.cache.redis_store import RedisCacheStore
from pmp.common.config import CacheConfig, config


def create_cache_store(cache_config: CacheConfig | None = None) -> CacheStore:
    """Build the cache store selected by cache_config.backend."""
    cache_config = cache_config or config.cache
    if cache_config.backend == "redis":
        return RedisCacheStore(cache_config=cache_config)
    return MemoryCacheStore()


__all__ = [
    "CacheEntry",
    "CacheStore",
    "MemoryCacheStore",
    "RedisCacheStore",
    "Topic",
    "create_cache_store",
    "is_valid_date",
]
