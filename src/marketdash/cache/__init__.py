"""Cache layer -- kind-namespaced TTL cache over memory or SQLite storage."""

from marketdash.cache.backends import CacheBackend, MemoryCacheBackend, SqliteCacheBackend
from marketdash.cache.store import DEFAULT_TTLS, CacheStore, cache_key, create_cache_store

__all__ = [
    "DEFAULT_TTLS",
    "CacheBackend",
    "CacheStore",
    "MemoryCacheBackend",
    "SqliteCacheBackend",
    "cache_key",
    "create_cache_store",
]
