"""FastAPI application for ReelRelay."""

from __future__ import annotations

import os
import time
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Awaitable, Callable
from uuid import uuid4

import sentry_sdk
from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.requests import Request
from fastapi.responses import JSONResponse, Response
from prometheus_client import Counter, Histogram
from starlette.exceptions import HTTPException as StarletteHTTPException

from reelrelay.api import routes
from reelrelay.api.routes.callbacks import provider_callback
from reelrelay.app_version import get_app_version
from reelrelay.billing import BillingService, StripeGateway
from reelrelay.config import settings
from reelrelay.config.settings import get_settings
from reelrelay.errors import DomainError
from reelrelay.jobs import FanoutDispatcher, JobCoordinator
from reelrelay.observability.logging import logger, request_id_var
from reelrelay.providers import get_video_provider
from reelrelay.registry import (
    EndpointReconciler,
    EndpointRegistry,
    RefreshScheduler,
    reserved_prefixes,
)
from reelrelay.storage.database import init_async_db, shutdown_async_db


def _should_init_sentry() -> bool:
    """Guard Sentry initialization in tests/dev to avoid noisy pending-event logs."""
    if not settings.sentry_dsn:
        return False
    if os.getenv("PYTEST_CURRENT_TEST"):
        return False
    if os.getenv("DISABLE_SENTRY", "").lower() in ("1", "true", "yes"):
        return False
    return True


REQUEST_COUNT = Counter(
    "reelrelay_http_requests_total", "Total HTTP requests", ["method", "path", "status"]
)
REQUEST_LATENCY = Histogram(
    "reelrelay_http_request_duration_seconds",
    "HTTP request duration in seconds",
    buckets=(0.05, 0.1, 0.25, 0.5, 1, 2, 5, 10, 30),
    labelnames=["path"],
)


def _metrics_path(request: Request) -> str:
    """Return a low-cardinality path label for metrics."""
    route = request.scope.get("route")
    if route is not None:
        path = getattr(route, "path", None)
        if path:
            return str(path)
    return "unmatched"


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Wire the registry, refresh scheduler, job coordinator and billing service."""
    from reelrelay.observability import init_observability

    init_observability()
    cfg = get_settings()
    logger.info(
        "reelrelay_starting",
        environment=cfg.environment,
        video_provider=cfg.video_provider,
        callback_path=cfg.provider_callback_path,
    )

    if _should_init_sentry():
        try:
            sentry_sdk.init(dsn=cfg.sentry_dsn, traces_sample_rate=0.1, shutdown_timeout=0)
        except Exception as exc:  # tolerates invalid/empty DSN in dev/test
            logger.warning("sentry_init_skipped", error=str(exc))

    try:
        await init_async_db()
        app.state.database_ready = True
    except Exception as exc:
        logger.error("database_init_failed", error=str(exc))
        app.state.database_ready = False
        if cfg.fail_fast_on_startup:
            raise

    provider = get_video_provider(cfg)
    dispatcher = FanoutDispatcher(timeout_seconds=cfg.fanout_timeout_seconds)
    registry = EndpointRegistry(reserved_prefixes(cfg.provider_callback_path))
    reconciler = EndpointReconciler(registry, unmount_inactive=cfg.registry_unmount_inactive)
    scheduler = RefreshScheduler(
        reconciler,
        interval_seconds=cfg.registry_refresh_seconds,
        periodic=cfg.registry_refresh_enabled,
    )

    app.state.provider = provider
    app.state.registry = registry
    app.state.reconciler = reconciler
    app.state.scheduler = scheduler
    app.state.coordinator = JobCoordinator(provider=provider, dispatcher=dispatcher)
    app.state.billing = BillingService(
        StripeGateway(api_key=cfg.stripe_secret_key, webhook_secret=cfg.stripe_webhook_secret)
    )

    # First pass runs before the app accepts traffic.
    await scheduler.start()

    try:
        yield
    finally:
        logger.info("reelrelay_shutting_down", refresh_passes=scheduler.passes)
        await scheduler.stop()
        await provider.aclose()
        await shutdown_async_db()


async def request_id_middleware(
    request: Request,
    call_next: Callable[[Request], Awaitable[Response]],
) -> Response:
    """Middleware to manage X-Request-ID header and contextvar propagation."""

    incoming_request_id = request.headers.get("X-Request-ID")
    request_id = incoming_request_id or str(uuid4())

    token = request_id_var.set(request_id)
    try:
        response = await call_next(request)
    finally:
        request_id_var.reset(token)

    response.headers["X-Request-ID"] = request_id
    return response


async def timing_middleware(
    request: Request,
    call_next: Callable[[Request], Awaitable[Response]],
) -> Response:
    start = time.perf_counter()
    response = await call_next(request)
    duration_ms = (time.perf_counter() - start) * 1000
    try:
        path_label = _metrics_path(request)
        REQUEST_COUNT.labels(
            method=request.method,
            path=path_label,
            status=response.status_code,
        ).inc()
        REQUEST_LATENCY.labels(path=path_label).observe(duration_ms / 1000.0)
    except Exception as metrics_exc:  # pragma: no cover - metrics should not break requests
        logger.debug(
            "metrics_observe_failed",
            exc=str(metrics_exc),
            exc_type=type(metrics_exc).__name__,
        )
    logger.info(
        "request_complete",
        path=str(request.url.path),
        method=request.method,
        status=response.status_code,
        duration_ms=round(duration_ms, 2),
    )
    response.headers["X-Response-Time-ms"] = f"{duration_ms:.2f}"
    return response


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Return consistent error envelope."""
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": str(exc.detail), "code": "http_error"},
        headers=getattr(exc, "headers", None),
    )


async def request_validation_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    logger.info("request_validation_failed", path=str(request.url.path), errors=len(exc.errors()))
    return JSONResponse(
        status_code=400,
        content={"error": "Invalid request", "code": "validation_error"},
    )


async def domain_error_handler(request: Request, exc: DomainError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("request_failed", path=str(request.url.path), code=exc.error, error=str(exc))
    return JSONResponse(status_code=exc.status_code, content=exc.to_payload())


def create_app() -> FastAPI:
    app = FastAPI(
        title="ReelRelay API",
        description="Webhook-triggered video generation with completion fan-out",
        version=get_app_version(),
        lifespan=lifespan,
    )

    app.middleware("http")(request_id_middleware)
    app.middleware("http")(timing_middleware)

    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(DomainError, domain_error_handler)

    app.include_router(routes.health.router)
    app.include_router(routes.registrations.router)
    app.include_router(routes.billing.router)
    app.add_api_route(
        settings.provider_callback_path,
        provider_callback,
        methods=["POST"],
        tags=["callbacks"],
    )
    # Catch-all; anything registered after this is unreachable for POST.
    app.include_router(routes.triggers.router)
    return app


app = create_app()


__all__ = ["app", "create_app", "lifespan"]
