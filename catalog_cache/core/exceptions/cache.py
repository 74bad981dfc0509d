"""
Cache-Related Exceptions

Raised by the Redis client. The cache backend boundary absorbs them so that
callers degrade to persistence reads instead of failing.

Author: Catalog Platform Team
Date: 2025-12-08
"""

from catalog_cache.core.exceptions.base import CatalogBaseError


class CacheError(CatalogBaseError):
    """Base exception for cache-related errors."""
    pass


class CacheConnectionError(CacheError):
    """
    Raised when unable to connect to the cache (Redis).

    Common causes:
    - Redis server is down
    - Network connectivity issues
    - Incorrect host/port configuration
    - Authentication failure
    """
    pass


class CacheKeyError(CacheError):
    """
    Raised when a cache key operation fails.

    Common causes:
    - Operation timeout
    - Connection dropped mid-command
    - Memory limit exceeded
    """
    pass
