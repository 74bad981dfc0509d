"""
Stampede-Protected Get-or-Compute

When a hot key expires, many concurrent readers would otherwise recompute it
at once (cache stampede). The guard lets one caller win a short-lived lock
and recompute; the rest wait briefly and re-read.

Algorithm:
    1. GET key. Hit -> return.
    2. SET NX "<key>:lock" with a short TTL.
       Not acquired -> sleep lock_wait, re-read once, return on hit,
       otherwise compute anyway (the lock holder may have died).
    3. Compute. Non-None results are cached with the caller's TTL.
       The lock owner deletes the lock in all cases.
    4. Return the result. None means "not found" and is never cached.

The lock TTL bounds how long a crashed holder can block others; it is the
only timeout in the scheme.
"""

import asyncio
import inspect
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

from catalog_cache.core.config.constants import LOCK_TTL_SECONDS, LOCK_VALUE, LOCK_WAIT_SECONDS
from catalog_cache.core.interfaces.cache import CacheBackend
from catalog_cache.infrastructure.cache.keys import lock_key_for
from catalog_cache.infrastructure.cache.observer import CacheObserver

T = TypeVar("T")

ComputeFn = Callable[[], "Awaitable[T | None] | T | None"]


class StampedeGuard:
    """
    Get-or-compute with a distributed recompute lock.

    Usage:
        guard = StampedeGuard(backend)
        product = await guard.get_or_set(
            "product:42:detail", 120, lambda: repository.find_detail_by_id(42)
        )
    """

    def __init__(
        self,
        backend: CacheBackend,
        lock_ttl: int = LOCK_TTL_SECONDS,
        lock_wait: float = LOCK_WAIT_SECONDS,
        observer: CacheObserver | None = None,
    ):
        self._backend = backend
        self._lock_ttl = lock_ttl
        self._lock_wait = lock_wait
        self._observer = observer or CacheObserver()

    async def get_or_set(self, key: str, ttl: int, compute_fn: ComputeFn) -> Any | None:
        """
        Return the cached value for ``key``, computing and caching it on a miss.

        Args:
            key: Cache key
            ttl: TTL in seconds for a freshly computed value
            compute_fn: Zero-argument callable, sync or async. Returning None
                means "not found".

        Returns:
            Cached or computed value, or None

        Raises:
            Whatever compute_fn raises, after the lock is released
        """
        cached = await self._backend.get(key)
        if cached is not None:
            self._observer.record_guard_hit(key)
            return cached

        lock_key = lock_key_for(key)
        acquired = await self._backend.set_if_not_exists(lock_key, LOCK_VALUE, self._lock_ttl)
        self._observer.record_lock(key, acquired)

        if not acquired:
            await asyncio.sleep(self._lock_wait)
            cached = await self._backend.get(key)
            if cached is not None:
                self._observer.record_wait_hit(key)
                return cached

        try:
            result = compute_fn()
            if inspect.isawaitable(result):
                result = await result

            if result is not None:
                await self._backend.set(key, result, ttl)
            self._observer.record_compute(key, found=result is not None, cached=result is not None)
            return result
        finally:
            if acquired:
                await self._backend.delete(lock_key)


async def get_or_set_cache(
    backend: CacheBackend,
    key: str,
    ttl: int,
    compute_fn: ComputeFn,
    *,
    lock_ttl: int = LOCK_TTL_SECONDS,
    lock_wait: float = LOCK_WAIT_SECONDS,
    observer: CacheObserver | None = None,
) -> Any | None:
    """Functional form of StampedeGuard.get_or_set."""
    guard = StampedeGuard(backend, lock_ttl=lock_ttl, lock_wait=lock_wait, observer=observer)
    return await guard.get_or_set(key, ttl, compute_fn)
