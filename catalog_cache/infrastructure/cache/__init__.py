"""
Cache Infrastructure

Split product cache, stampede guard and the backends they run on.

Components:
-----------
- **keys.py**: KeyCodec and query fingerprints
- **redis_client.py**: Pooled async Redis client
- **backends.py**: Fail-open Redis backend and in-memory backend
- **stampede.py**: StampedeGuard / get_or_set_cache
- **product_cache.py**: SplitProductCache, ProductCacheConfig, CacheUpdateAction
- **list_invalidator.py**: ListCacheInvalidator
- **cache_manager.py**: CacheManager wiring it all together
"""

from catalog_cache.infrastructure.cache.backends import InMemoryCacheBackend, RedisCacheBackend
from catalog_cache.infrastructure.cache.cache_manager import CacheManager
from catalog_cache.infrastructure.cache.keys import KeyCodec, build_fingerprint, lock_key_for
from catalog_cache.infrastructure.cache.list_invalidator import ListCacheInvalidator
from catalog_cache.infrastructure.cache.observer import CacheObserver
from catalog_cache.infrastructure.cache.product_cache import (
    CacheUpdateAction,
    ProductCacheConfig,
    SplitProductCache,
)
from catalog_cache.infrastructure.cache.redis_client import RedisClient
from catalog_cache.infrastructure.cache.stampede import StampedeGuard, get_or_set_cache

__all__ = [
    "CacheManager",
    "CacheObserver",
    "CacheUpdateAction",
    "InMemoryCacheBackend",
    "KeyCodec",
    "ListCacheInvalidator",
    "ProductCacheConfig",
    "RedisCacheBackend",
    "RedisClient",
    "SplitProductCache",
    "StampedeGuard",
    "build_fingerprint",
    "get_or_set_cache",
    "lock_key_for",
]
