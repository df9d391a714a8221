"""Operational endpoints: liveness, database health and Prometheus metrics."""

from __future__ import annotations

from typing import Any, Dict

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from sqlalchemy import text

from reelrelay.api.schemas import HealthResponse
from reelrelay.app_version import get_app_version
from reelrelay.config.settings import settings
from reelrelay.observability.logging import get_logger
from reelrelay.observability.metrics import mounted_endpoints

router = APIRouter(tags=["Health"])
logger = get_logger(__name__)


@router.get("/health", response_model=HealthResponse)
async def health_check(request: Request) -> dict[str, Any]:
    """Liveness check with registry state."""
    registry = getattr(request.app.state, "registry", None)
    scheduler = getattr(request.app.state, "scheduler", None)
    return {
        "status": "healthy",
        "version": get_app_version(),
        "database_ready": getattr(request.app.state, "database_ready", None),
        "mounted_endpoints": len(registry) if registry is not None else 0,
        "registry_refresh_running": bool(scheduler and scheduler.running),
        "video_provider": settings.video_provider,
    }


@router.get("/health/db")
async def db_health_check() -> JSONResponse:
    """Check database connectivity.

    Returns 200 if database is healthy, 503 otherwise.
    """
    from reelrelay.storage.database import get_async_engine

    checks: Dict[str, Any] = {"database": "unknown"}
    status_code = 200

    try:
        engine = get_async_engine()
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        checks["database"] = "healthy"
    except Exception as exc:
        logger.error("database_health_check_failed", error=str(exc))
        checks["database"] = "unhealthy"
        checks["database_error"] = str(exc)
        status_code = 503

    return JSONResponse(content=checks, status_code=status_code)


@router.get("/metrics", include_in_schema=False)
def metrics(request: Request) -> Response:
    registry = getattr(request.app.state, "registry", None)
    if registry is not None:
        mounted_endpoints.set(len(registry))
    return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)


__all__ = ["router"]
