"""
FastAPI dependencies.

Application-level objects are built once in the lifespan handler and kept
on ``app.state``; these providers hand them to route handlers.
"""

from typing import Annotated

from fastapi import Depends, Request

from catalog_cache.core.config.settings import Settings
from catalog_cache.infrastructure.cache.cache_manager import CacheManager


def get_cache_manager(request: Request) -> CacheManager:
    """Retrieve the CacheManager created at startup."""
    return request.app.state.cache_manager


def get_app_settings(request: Request) -> Settings:
    """Settings the application was created with."""
    return request.app.state.settings


CacheManagerDep = Annotated[CacheManager, Depends(get_cache_manager)]
SettingsDep = Annotated[Settings, Depends(get_app_settings)]
