"""
Cache Backend Protocol

The narrow key-value contract the product cache is written against. Redis,
the in-memory store, or any KV store with TTL expiry and an atomic
create-if-absent primitive can satisfy it.

Contract:
- Values are JSON-serialisable Python objects; encoding is the backend's job.
- Implementations are fail-open: backend errors are logged and reported as a
  miss (None / no-op / 0 / False), never raised to the caller.

Author: Catalog Platform Team
Date: 2025-12-08
"""

from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class CacheBackend(Protocol):
    """
    Protocol defining the six operations the cache layer depends on.

    Implementations:
    - RedisCacheBackend: Shared Redis store (production)
    - InMemoryCacheBackend: Single-instance deployments and tests

    Usage:
        async def warm(cache: CacheBackend, key: str, value: dict) -> None:
            await cache.set(key, value, ttl=60)
    """

    async def get(self, key: str) -> Any | None:
        """
        Get a value.

        Returns:
            Decoded value, or None if absent, expired or the backend failed
        """
        ...

    async def set(self, key: str, value: Any, ttl: int) -> None:
        """
        Store a value with a TTL in seconds. Best-effort.
        """
        ...

    async def delete(self, *keys: str) -> None:
        """
        Delete one or more keys. Best-effort.
        """
        ...

    async def delete_by_prefix(self, pattern: str) -> int:
        """
        Delete every key matching a glob pattern (e.g. "product:list:*").

        Returns:
            int: Number of keys deleted (0 on failure)
        """
        ...

    async def set_if_not_exists(self, key: str, value: Any, ttl: int) -> bool:
        """
        Atomically create a key only if it is absent.

        Returns:
            bool: True if this caller created the key
        """
        ...

    async def exists(self, key: str) -> bool:
        """
        Check whether a key is present.
        """
        ...
