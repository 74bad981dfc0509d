"""
FastAPI Application Entry Point

Wires configuration, logging and the CacheManager into a FastAPI app.

Usage:
    uvicorn catalog_cache.api.app:create_app --factory
"""

import uuid
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request

from catalog_cache.api.health import router as health_router
from catalog_cache.core.config.settings import Settings, get_settings
from catalog_cache.core.logging.logger import (
    clear_request_id,
    get_logger,
    set_request_id,
    setup_logging,
)
from catalog_cache.infrastructure.cache.cache_manager import CacheManager

logger = get_logger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"


def create_app(
    settings: Settings | None = None,
    cache_manager: CacheManager | None = None,
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        settings: Application settings (defaults to get_settings())
        cache_manager: Pre-built manager, e.g. one over an in-memory backend
            in tests. Built from settings when omitted.

    Returns:
        FastAPI: Configured application instance
    """
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        setup_logging(log_level=settings.logging.LOG_LEVEL, log_format=settings.logging.LOG_FORMAT)
        logger.info(
            "Starting catalog cache service",
            environment=settings.app.ENVIRONMENT,
            version=settings.app.APP_VERSION,
        )

        manager = cache_manager or CacheManager.from_settings(settings)
        await manager.initialize()
        app.state.cache_manager = manager

        try:
            yield
        finally:
            logger.info("Shutting down application")
            await manager.shutdown()
            logger.info("Application shutdown complete")

    app = FastAPI(
        title=settings.app.APP_NAME,
        version=settings.app.APP_VERSION,
        description="Product catalog cache service",
        lifespan=lifespan,
    )
    app.state.settings = settings

    @app.middleware("http")
    async def request_id_middleware(request: Request, call_next):
        request_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid.uuid4())
        set_request_id(request_id)
        try:
            response = await call_next(request)
        finally:
            clear_request_id()
        response.headers[REQUEST_ID_HEADER] = request_id
        return response

    app.include_router(health_router)
    return app
