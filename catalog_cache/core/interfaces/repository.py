"""
Product Repository Protocol

The persistence layer as seen by the product service: a CRUD store keyed by
integer id. Products are returned as mappings (or objects exposing
``model_dump()``) that include their ``variants``.
"""

from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from catalog_cache.products.models import ProductCursorQuery, ProductListQuery


@runtime_checkable
class ProductRepository(Protocol):
    """Persistence operations consumed by ProductService."""

    async def find_by_id(self, product_id: int) -> dict[str, Any] | None:
        """Load a product row without relations."""
        ...

    async def find_detail_by_id(self, product_id: int) -> dict[str, Any] | None:
        """Load a product with its variants."""
        ...

    async def find_with_pagination(
        self, query: "ProductListQuery"
    ) -> tuple[list[dict[str, Any]], int]:
        """Return (items, total) for an offset page."""
        ...

    async def find_with_cursor(
        self, query: "ProductCursorQuery"
    ) -> tuple[list[dict[str, Any]], str | None, str | None]:
        """Return (items, after_cursor, before_cursor) for a cursor page."""
        ...

    async def create(self, data: dict[str, Any]) -> dict[str, Any]:
        """Insert a product (and its variants) and return the stored detail."""
        ...

    async def update(self, product_id: int, data: dict[str, Any]) -> dict[str, Any] | None:
        """Update columns and return the updated row, or None if missing."""
        ...

    async def delete(self, product_id: int) -> bool:
        """Delete a product. Returns True if a row was removed."""
        ...
