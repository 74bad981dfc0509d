"""
Split Product Cache

One logical product is cached as three independently expiring entries:

    product:{id}:meta       name, slug, description, ... (TTL 1 day)
    product:{id}:price      price, discount_price, is_active, is_visible (TTL 5 min)
    product:{id}:variants   ordered variants list (TTL 5 min)

A read is a hit only when all three entries are present; a partially expired
product reads as a miss so callers reload it from persistence instead of
serving a half-stale composite.

Writes choose the narrowest refresh that keeps the cache coherent
(smart_update): price-only edits rewrite the price entry, meta-only edits
merge into the meta entry, anything else evicts the product. List pages are
dropped on every write.

Author: Catalog Platform Team
Date: 2025-12-10
"""

import asyncio
from collections.abc import Mapping
from dataclasses import dataclass, fields, replace
from enum import Enum
from typing import Any

from catalog_cache.core.config.constants import (
    META_FIELDS,
    META_SNAPSHOT_FIELDS,
    PRICE_FIELDS,
    PRICE_SNAPSHOT_FIELDS,
    VARIANTS_FIELD,
    Stage,
)
from catalog_cache.core.config.settings import Settings, get_settings
from catalog_cache.core.exceptions import ConfigurationError
from catalog_cache.core.interfaces.cache import CacheBackend
from catalog_cache.core.logging.logger import get_logger, log_stage
from catalog_cache.infrastructure.cache.keys import KeyCodec
from catalog_cache.infrastructure.cache.list_invalidator import ListCacheInvalidator
from catalog_cache.infrastructure.cache.observer import CacheObserver

logger = get_logger(__name__)


# =============================================================================
# CONFIGURATION
# =============================================================================


@dataclass(frozen=True)
class ProductCacheConfig:
    """
    TTLs (seconds) for the product cache entries.

    Attributes:
        meta_ttl: Descriptive fields, rarely change
        price_ttl: Price and visibility flags
        variants_ttl: Variants list
        list_ttl: List and cursor pages
        get_or_set_ttl: Detail reload slot used by the stampede guard
    """

    meta_ttl: int = 86400
    price_ttl: int = 300
    variants_ttl: int = 300
    list_ttl: int = 180
    get_or_set_ttl: int = 120

    def __post_init__(self):
        for field in fields(self):
            value = getattr(self, field.name)
            if not isinstance(value, int) or isinstance(value, bool) or value <= 0:
                raise ConfigurationError(
                    f"{field.name} must be a positive integer number of seconds",
                    details={"field": field.name, "value": value},
                )

    def with_overrides(self, **ttl_overrides: int) -> "ProductCacheConfig":
        """Return a copy with some TTLs replaced."""
        unknown = set(ttl_overrides) - {field.name for field in fields(self)}
        if unknown:
            raise ConfigurationError(
                "Unknown product cache TTL override",
                details={"unknown": sorted(unknown)},
            )
        return replace(self, **ttl_overrides)

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> "ProductCacheConfig":
        cache = (settings or get_settings()).cache
        return cls(
            meta_ttl=cache.PRODUCT_CACHE_META_TTL,
            price_ttl=cache.PRODUCT_CACHE_PRICE_TTL,
            variants_ttl=cache.PRODUCT_CACHE_VARIANTS_TTL,
            list_ttl=cache.PRODUCT_CACHE_LIST_TTL,
            get_or_set_ttl=cache.PRODUCT_CACHE_GET_OR_SET_TTL,
        )


class CacheUpdateAction(str, Enum):
    """Which refresh smart_update performed."""

    PRICE = "price"
    META = "meta"
    FULL = "full"


# =============================================================================
# PROJECTION
# =============================================================================


def as_mapping(product: Any) -> dict[str, Any]:
    """
    View a product as a plain dict.

    Accepts mappings, pydantic models and plain objects.
    """
    if product is None:
        return {}
    if isinstance(product, Mapping):
        return dict(product)
    if hasattr(product, "model_dump"):
        return product.model_dump()
    return dict(vars(product))


def project(data: Mapping[str, Any], names: tuple[str, ...]) -> dict[str, Any]:
    """Copy only the named keys the data actually has."""
    return {name: data[name] for name in names if name in data}


def changed_fields(update_data: Any) -> set[str]:
    """Field names an update explicitly sets."""
    if update_data is None:
        return set()
    if hasattr(update_data, "model_dump"):
        return set(update_data.model_dump(exclude_unset=True))
    if isinstance(update_data, Mapping):
        return set(update_data)
    return set(vars(update_data))


# =============================================================================
# SPLIT CACHE
# =============================================================================


class SplitProductCache:
    """
    Product cache split into meta, price and variants entries.

    Usage:
        cache = SplitProductCache(backend)
        await cache.set(42, product)
        product = await cache.get(42)          # None unless all three present
        action = await cache.smart_update(42, {"price": 10}, updated_product)
    """

    def __init__(
        self,
        backend: CacheBackend,
        config: ProductCacheConfig | None = None,
        codec: KeyCodec | None = None,
        observer: CacheObserver | None = None,
        list_invalidator: ListCacheInvalidator | None = None,
    ):
        self._backend = backend
        self._config = config or ProductCacheConfig()
        self._codec = codec or KeyCodec()
        self._observer = observer or CacheObserver()
        self._list_invalidator = list_invalidator or ListCacheInvalidator(backend, self._observer)

    @property
    def config(self) -> ProductCacheConfig:
        return self._config

    @property
    def codec(self) -> KeyCodec:
        return self._codec

    @property
    def backend(self) -> CacheBackend:
        return self._backend

    async def get(self, product_id: int | str) -> dict[str, Any] | None:
        """
        Compose a product from its three entries.

        STAGE-2.1: Split cache lookup

        Returns:
            Composite product, or None if any entry is missing
        """
        meta_key, price_key, variants_key = self._codec.field_keys(product_id)
        meta, price, variants = await asyncio.gather(
            self._backend.get(meta_key),
            self._backend.get(price_key),
            self._backend.get(variants_key),
        )

        if meta is None or price is None or variants is None:
            missing = [
                name
                for name, value in (("meta", meta), ("price", price), ("variants", variants))
                if value is None
            ]
            self._observer.record_split_lookup(product_id, hit=False, missing=missing)
            return None

        self._observer.record_split_lookup(product_id, hit=True)
        return {**meta, **price, VARIANTS_FIELD: variants}

    async def set(self, product_id: int | str, product: Any, ttl: int | None = None) -> None:
        """
        Write all three entries concurrently.

        STAGE-2.3: Cache population

        Args:
            product_id: Product id
            product: Mapping, pydantic model or object
            ttl: Optional TTL applied to all three entries instead of the
                configured per-field TTLs
        """
        data = as_mapping(product)
        meta_key, price_key, variants_key = self._codec.field_keys(product_id)

        writes = (
            (meta_key, project(data, META_SNAPSHOT_FIELDS), ttl or self._config.meta_ttl),
            (price_key, project(data, PRICE_SNAPSHOT_FIELDS), ttl or self._config.price_ttl),
            (variants_key, list(data.get(VARIANTS_FIELD) or []), ttl or self._config.variants_ttl),
        )
        results = await asyncio.gather(
            *(self._backend.set(key, value, entry_ttl) for key, value, entry_ttl in writes),
            return_exceptions=True,
        )
        for (key, _, _), result in zip(writes, results):
            if isinstance(result, BaseException):
                # Partial writes self-heal: the next get() sees a miss
                log_stage(
                    logger,
                    Stage.CACHE_POPULATION,
                    "Product cache field write failed",
                    level="warning",
                    cache_key=key,
                    error=str(result),
                )

    async def update_meta(self, product_id: int | str, partial: Any) -> None:
        """
        Shallow-merge meta fields over the cached meta entry.

        With no cached meta, a partial update is skipped rather than written:
        a meta entry holding only the changed fields would turn a miss into
        a hit on an incomplete product. A partial that carries every meta
        field is written as is.
        """
        key = self._codec.meta_key(product_id)
        incoming = project(as_mapping(partial), META_SNAPSHOT_FIELDS)
        current = await self._backend.get(key)
        if current is None and not set(META_FIELDS) <= set(incoming):
            log_stage(logger, Stage.CACHE_INVALIDATION, "No cached meta to merge into, skipped",
                      level="debug", product_id=product_id)
            return
        await self._backend.set(key, {**(current or {}), **incoming}, self._config.meta_ttl)

    async def update_price(self, product_id: int | str, partial: Any) -> None:
        """Overwrite the price entry. Meta and variants are left alone."""
        await self._backend.set(
            self._codec.price_key(product_id),
            project(as_mapping(partial), PRICE_SNAPSHOT_FIELDS),
            self._config.price_ttl,
        )

    async def update_variants(self, product_id: int | str, variants: list[Any]) -> None:
        await self._backend.set(
            self._codec.variants_key(product_id),
            list(variants or []),
            self._config.variants_ttl,
        )

    async def invalidate(self, product_id: int | str) -> None:
        """
        Evict every entry for a product: meta, price, variants, detail and lock.

        STAGE-2.4: Cache invalidation
        """
        await self._backend.delete(
            *self._codec.field_keys(product_id),
            self._codec.detail_key(product_id),
            self._codec.lock_key(product_id),
        )

    async def invalidate_list(self) -> int:
        """Drop every cached list and cursor page for this entity."""
        return await self._list_invalidator.invalidate_all(self._codec.entity)

    async def smart_update(
        self, product_id: int | str, update_data: Any, current_product: Any
    ) -> CacheUpdateAction:
        """
        Refresh the cache after a write, as narrowly as the changed fields allow.

        - Every changed field is a price field -> rewrite the price entry
        - Every changed field is a meta field -> merge into the meta entry
        - Anything else (mixed, unknown, empty, or no current product) -> evict

        List pages are invalidated afterwards in all cases.

        Args:
            product_id: Product id
            update_data: The update as sent (mapping or pydantic model)
            current_product: The product as now stored in persistence

        Returns:
            CacheUpdateAction: The refresh performed
        """
        changed = changed_fields(update_data)

        if changed and current_product is not None and changed <= PRICE_FIELDS:
            action = CacheUpdateAction.PRICE
            await self.update_price(product_id, current_product)
        elif changed and current_product is not None and changed <= META_FIELDS:
            action = CacheUpdateAction.META
            await self.update_meta(product_id, current_product)
        else:
            action = CacheUpdateAction.FULL
            await self.invalidate(product_id)

        self._observer.record_invalidation(product_id, action.value)
        await self.invalidate_list()
        return action
