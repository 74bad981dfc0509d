"""
Health Check Routes

- GET /health        liveness: the process is up, no dependency checks
- GET /health/cache  cache round-trip; 503 when the backend is unreachable

The cache is an optimisation, so an unhealthy cache means degraded latency,
not an outage. Readiness probes can still use /health/cache to route traffic
away from instances that lost their cache.
"""

from datetime import datetime, timezone

from fastapi import APIRouter, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from catalog_cache.api.dependencies import CacheManagerDep, SettingsDep

router = APIRouter(prefix="/health", tags=["Health"])


class HealthResponse(BaseModel):
    """Standard health check response."""

    status: str  # "healthy" | "unhealthy"
    timestamp: str  # ISO 8601
    components: dict | None = None


def _now() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


@router.get("", response_model=HealthResponse)
async def health_check(settings: SettingsDep) -> HealthResponse:
    """Liveness check for load balancers."""
    return HealthResponse(
        status="healthy",
        timestamp=_now(),
        components={"app": {"name": settings.app.APP_NAME, "version": settings.app.APP_VERSION}},
    )


@router.get("/cache", response_model=HealthResponse)
async def cache_health(cache_manager: CacheManagerDep):
    """
    Cache backend health with counters.

    HTTP Status Codes:
        200: Sentinel key round-trip succeeded
        503: Backend unreachable (reads are falling through to persistence)
    """
    report = await cache_manager.health_report()
    body = HealthResponse(status=report["status"], timestamp=_now(), components={"cache": report})

    if not report["reachable"]:
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content=body.model_dump(),
        )
    return body
