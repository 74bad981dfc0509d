"""
Product Service

Cache-aware orchestration of product reads and writes. Persistence is the
source of truth; the cache is refreshed explicitly after every write.

Read path:
    SplitProductCache.get -> hit: return
                          -> miss: stampede-guarded reload at the detail key,
                             which repopulates the split entries

Write path:
    repository write -> targeted cache refresh -> list invalidation
"""

from typing import Any

from catalog_cache.core.config.constants import Stage
from catalog_cache.core.exceptions import ProductError, ProductNotFoundError, QueueError
from catalog_cache.core.interfaces.message_queue import MessageQueue
from catalog_cache.core.interfaces.repository import ProductRepository
from catalog_cache.core.logging.logger import get_logger, log_stage
from catalog_cache.infrastructure.cache.cache_manager import CacheManager
from catalog_cache.infrastructure.cache.product_cache import (
    CacheUpdateAction,
    SplitProductCache,
    as_mapping,
)
from catalog_cache.products.jobs import ImageUploadJob, extract_public_id
from catalog_cache.products.models import CursorPage, OffsetPage, ProductCursorQuery, ProductListQuery

logger = get_logger(__name__)


class ProductService:
    """
    Product reads and writes with explicit cache participation.

    Usage:
        service = ProductService(repository, cache_manager, job_queue)
        product = await service.get_by_id(42)
        await service.update(42, {"price": 10})
    """

    def __init__(
        self,
        repository: ProductRepository,
        cache_manager: CacheManager,
        job_queue: MessageQueue | None = None,
    ):
        self._repository = repository
        self._cache_manager = cache_manager
        self._job_queue = job_queue

    @property
    def product_cache(self) -> SplitProductCache:
        return self._cache_manager.get_product_cache()

    async def _get_existing(self, product_id: int) -> dict[str, Any]:
        product = await self._repository.find_by_id(product_id)
        if product is None:
            raise ProductNotFoundError(
                f"Product with id {product_id} not found",
                details={"product_id": product_id},
            )
        return as_mapping(product)

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    async def get_by_id(self, product_id: int) -> dict[str, Any]:
        """
        Get a product with its variants.

        Raises:
            ProductNotFoundError: If persistence has no such product
        """
        cache = self.product_cache
        cached = await cache.get(product_id)
        if cached is not None:
            return cached

        async def reload() -> dict[str, Any] | None:
            product = await self._repository.find_detail_by_id(product_id)
            if product is None:
                return None
            data = as_mapping(product)
            await cache.set(product_id, data)
            return data

        product = await self._cache_manager.get_or_set(
            cache.codec.detail_key(product_id),
            cache.config.get_or_set_ttl,
            reload,
        )
        if product is None:
            raise ProductNotFoundError(
                f"Product with id {product_id} not found",
                details={"product_id": product_id},
            )
        return product

    async def list_products(self, query: ProductListQuery) -> dict[str, Any]:
        """Offset page of products, cached per query fingerprint."""
        cache = self.product_cache
        key = cache.codec.list_key(query.fingerprint())

        async def load() -> dict[str, Any]:
            log_stage(logger, Stage.PRODUCT_SERVICE, "Product list cache miss, querying repository",
                      level="debug", cache_key=key)
            items, total = await self._repository.find_with_pagination(query)
            return OffsetPage(
                data=[as_mapping(item) for item in items],
                total=total,
                page=query.page,
                limit=query.limit,
            ).model_dump(mode="json")

        result = await self._cache_manager.get_or_set(key, cache.config.list_ttl, load)
        if result is None:
            return OffsetPage(page=query.page, limit=query.limit).model_dump(mode="json")
        return result

    async def load_more(self, query: ProductCursorQuery) -> dict[str, Any]:
        """Cursor page of products, cached per query fingerprint."""
        cache = self.product_cache
        key = cache.codec.cursor_key(query.fingerprint())

        async def load() -> dict[str, Any]:
            log_stage(logger, Stage.PRODUCT_SERVICE, "Cursor page cache miss, querying repository",
                      level="debug", cache_key=key)
            items, after_cursor, before_cursor = await self._repository.find_with_cursor(query)
            return CursorPage(
                data=[as_mapping(item) for item in items],
                count=len(items),
                after_cursor=after_cursor,
                before_cursor=before_cursor,
            ).model_dump(mode="json")

        result = await self._cache_manager.get_or_set(key, cache.config.list_ttl, load)
        if result is None:
            return CursorPage().model_dump(mode="json")
        return result

    # -------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------

    async def create(self, data: dict[str, Any]) -> dict[str, Any]:
        product = as_mapping(await self._repository.create(data))
        cache = self.product_cache
        await cache.set(product["id"], product)
        await cache.invalidate_list()

        log_stage(logger, Stage.PRODUCT_SERVICE, "Product created", product_id=product["id"])
        return product

    async def update(self, product_id: int, changes: Any) -> dict[str, Any]:
        """
        Update a product and refresh the cache as narrowly as possible.

        Args:
            product_id: Product id
            changes: Mapping or pydantic model of the fields to change

        Raises:
            ProductNotFoundError: If the product does not exist
        """
        await self._get_existing(product_id)

        if hasattr(changes, "model_dump"):
            data = changes.model_dump(exclude_unset=True)
        else:
            data = dict(changes)

        await self._repository.update(product_id, data)
        product = await self._repository.find_detail_by_id(product_id)
        if product is None:
            raise ProductNotFoundError(
                f"Product {product_id} not found after update",
                details={"product_id": product_id},
            )
        product = as_mapping(product)

        action = await self.product_cache.smart_update(product_id, changes, product)
        log_stage(logger, Stage.PRODUCT_SERVICE, "Product updated",
                  product_id=product_id, cache_action=action.value,
                  full_eviction=action is CacheUpdateAction.FULL)
        return product

    async def delete(self, product_id: int) -> None:
        await self._get_existing(product_id)
        await self._repository.delete(product_id)

        cache = self.product_cache
        await cache.invalidate(product_id)
        await cache.invalidate_list()
        log_stage(logger, Stage.PRODUCT_SERVICE, "Product deleted and cache invalidated",
                  product_id=product_id)

    async def update_product_image(self, product_id: int, image_url: str) -> dict[str, Any]:
        await self._get_existing(product_id)
        updated = await self._repository.update(product_id, {"image_url": image_url})
        if updated is None:
            raise ProductNotFoundError(
                f"Product {product_id} not found after image update",
                details={"product_id": product_id},
            )
        updated = as_mapping(updated)

        cache = self.product_cache
        await cache.update_meta(
            product_id,
            {"image_url": updated.get("image_url", image_url), "updated_at": updated.get("updated_at")},
        )
        await cache.invalidate_list()

        log_stage(logger, Stage.PRODUCT_SERVICE, "Product image updated", product_id=product_id)
        return updated

    async def upload_product_image_async(
        self, product_id: int, content: bytes, filename: str, mimetype: str
    ) -> str:
        """
        Queue an image upload for a product.

        Returns:
            str: Job id

        Raises:
            ProductNotFoundError: If the product does not exist
            ProductError: If the image is empty
            QueueError: If no job queue is configured or enqueueing fails
        """
        if self._job_queue is None:
            raise QueueError("No job queue configured for image uploads")

        product = await self._get_existing(product_id)
        if not content:
            raise ProductError(
                "Image content is empty",
                details={"product_id": product_id, "filename": filename},
            )

        job = ImageUploadJob.create(
            product_id,
            content,
            original_name=filename,
            mimetype=mimetype,
            old_public_id=extract_public_id(product.get("image_url")),
        )
        await self._job_queue.produce(job.to_message())

        log_stage(logger, Stage.PRODUCT_SERVICE, "Image upload job queued",
                  job_id=job.id, product_id=product_id)
        return job.id
