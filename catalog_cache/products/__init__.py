"""
Products Module

- **models.py**: Query and page models
- **service.py**: ProductService, cache-aware CRUD orchestration
- **jobs.py**: Image upload jobs and their processor
"""

from catalog_cache.products.jobs import ImageUploader, ImageUploadJob, ImageUploadProcessor
from catalog_cache.products.models import (
    CursorPage,
    OffsetPage,
    ProductCursorQuery,
    ProductListQuery,
    SortOrder,
)
from catalog_cache.products.service import ProductService

__all__ = [
    "CursorPage",
    "ImageUploadJob",
    "ImageUploadProcessor",
    "ImageUploader",
    "OffsetPage",
    "ProductCursorQuery",
    "ProductListQuery",
    "ProductService",
    "SortOrder",
]
