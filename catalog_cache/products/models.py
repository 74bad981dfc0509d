"""
Product query and page models.

Query models render a deterministic fingerprint used as the suffix of the
list and cursor cache keys.
"""

from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

from catalog_cache.infrastructure.cache.keys import build_fingerprint


class SortOrder(str, Enum):
    ASC = "ASC"
    DESC = "DESC"


class ProductListQuery(BaseModel):
    """
    Offset pagination request.

    Defaults are part of the fingerprint, so ``ProductListQuery()`` and
    ``ProductListQuery(page=1)`` share a cache entry.
    """
    page: int = Field(default=1, ge=1, description="1-based page number")
    limit: int = Field(default=10, ge=1, le=100, description="Items per page")
    search: str | None = Field(default=None, description="Free-text search")
    order: SortOrder = Field(default=SortOrder.ASC, description="Sort direction")
    sort_by: str = Field(default="created_at", description="Sort column")

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit

    def fingerprint(self) -> str:
        search = self.search.strip() if self.search else None
        return build_fingerprint(
            {
                "page": self.page,
                "limit": self.limit,
                "search": search,
                "order": self.order,
                "sort": self.sort_by,
            }
        )


class ProductCursorQuery(BaseModel):
    """Cursor ("load more") pagination request with optional filters."""
    limit: int = Field(default=10, ge=1, le=100)
    after_cursor: str | None = None
    before_cursor: str | None = None
    filters: dict[str, Any] = Field(default_factory=dict, description="Extra column filters")

    def fingerprint(self) -> str:
        return build_fingerprint(
            {
                **self.filters,
                "limit": self.limit,
                "after": self.after_cursor,
                "before": self.before_cursor,
            }
        )


class OffsetPage(BaseModel):
    data: list[dict[str, Any]] = Field(default_factory=list)
    total: int = 0
    page: int = 1
    limit: int = 10

    @property
    def page_count(self) -> int:
        return -(-self.total // self.limit) if self.limit else 0


class CursorPage(BaseModel):
    data: list[dict[str, Any]] = Field(default_factory=list)
    count: int = 0
    after_cursor: str | None = None
    before_cursor: str | None = None
