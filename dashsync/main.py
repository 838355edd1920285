"""
Reference dashboard API.

Serves the resources the sync layer talks to so a `DashboardClient` can be
run end-to-end: one GET/POST pair per domain, the combined dashboard
endpoint, health and Prometheus metrics.
"""

import logging

from fastapi import FastAPI, HTTPException, Request, Response, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from dashsync.api.routes.dashboard import router as dashboard_router
from dashsync.api.routes.domains import router as domains_router
from dashsync.api.routes.health import router as health_router
from dashsync.core.config import Settings
from dashsync.core.config import settings as default_settings
from dashsync.core.errors import DashSyncError, SaveBlockedError, get_status_code
from dashsync.core.observability import (
    ObservabilityMiddleware,
    configure_structured_logging,
    extract_request_context,
    metrics_endpoint,
)
from dashsync.repos.snapshot_repo import SnapshotRepository

logger = logging.getLogger(__name__)


def create_app(
    settings: Settings | None = None,
    repository: SnapshotRepository | None = None,
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Sets up:
    - Structured logging with correlation IDs
    - Observability middleware (metrics, request tracking)
    - CORS middleware
    - Exception handlers for domain errors
    - API routers
    - Metrics endpoint for Prometheus scraping
    """
    settings = settings or default_settings

    if settings.observability_structured_logs:
        configure_structured_logging(settings.app_log_level)

    app = FastAPI(
        title=settings.app_name,
        description="Reference API for the dashboard sync layer",
        version="0.1.0",
    )
    app.state.settings = settings
    app.state.repository = repository or SnapshotRepository()

    if settings.observability_enabled:
        app.add_middleware(
            ObservabilityMiddleware,
            request_id_header=settings.observability_request_id_header,
        )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # ============================================================================
    # Exception Handlers
    # ============================================================================

    @app.exception_handler(DashSyncError)
    async def dashsync_error_handler(request: Request, exc: DashSyncError) -> JSONResponse:
        """
        Map domain exceptions to status codes and a JSON error body.

        A blocked save carries `blocked: true` so the client can tell an
        intentional rejection from a failure.
        """
        status_code = get_status_code(exc)
        context = {
            "details": exc.details,
            **extract_request_context(request),
        }
        if status_code >= 500:
            logger.error(f"{exc.__class__.__name__}: {exc.message}", extra=context)
        else:
            logger.warning(f"{exc.__class__.__name__}: {exc.message}", extra=context)

        content = {
            "error": exc.message,
            "code": exc.__class__.__name__,
            "details": exc.details,
        }
        if isinstance(exc, SaveBlockedError):
            content["blocked"] = True
        return JSONResponse(status_code=status_code, content=content)

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error(
                f"HTTP {exc.status_code}: {exc.detail}",
                extra=extract_request_context(request),
            )
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": exc.detail, "code": "HTTPException", "details": {}},
            headers=exc.headers,
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Log the full exception and return a generic 500."""
        logger.error(
            f"Unhandled exception: {exc}",
            exc_info=True,
            extra=extract_request_context(request),
        )
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "error": "An unexpected error occurred",
                "code": "InternalServerError",
                "details": {},
            },
        )

    # ============================================================================
    # Router Registration
    # ============================================================================

    app.include_router(health_router)
    app.include_router(domains_router)
    app.include_router(dashboard_router)

    if settings.observability_enabled:

        async def metrics(request: Request) -> Response:
            return metrics_endpoint()

        app.add_route("/metrics", metrics)

    return app


app = create_app()
