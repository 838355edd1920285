"""
Observability module for dashsync.

Provides:
- Structured logging with JSON format and correlation IDs
- Request correlation ID (request_id) generation and propagation
- Prometheus metrics for the sync layer (cache, loads, saves) and the API
- Request tracking middleware for latency and status codes

Usage:
    from dashsync.core.observability import (
        configure_structured_logging,
        metrics,
    )
"""

import json
import logging
import time
import uuid
from collections.abc import Callable
from contextvars import ContextVar
from datetime import UTC, datetime
from typing import Any

from fastapi import Request, Response
from prometheus_client import CollectorRegistry, Counter, Gauge, Histogram, generate_latest
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

# ============================================================================
# Context Variables for Request Tracking
# ============================================================================

# Correlation ID - links all logs for a single request
_request_id_ctx: ContextVar[str] = ContextVar("request_id", default="")


def generate_request_id() -> str:
    """Generate a unique request ID for correlation."""
    return str(uuid.uuid4())


def get_request_id() -> str:
    """Get the current request ID from context."""
    return _request_id_ctx.get()


def set_correlation_id(request_id: str) -> None:
    """Set the correlation ID for the current request context."""
    _request_id_ctx.set(request_id)


# ============================================================================
# Structured Logging
# ============================================================================

_RESERVED_RECORD_KEYS = frozenset(
    {
        "name",
        "msg",
        "args",
        "levelname",
        "levelno",
        "pathname",
        "filename",
        "module",
        "lineno",
        "funcName",
        "created",
        "msecs",
        "relativeCreated",
        "thread",
        "threadName",
        "processName",
        "process",
        "taskName",
        "getMessage",
        "exc_info",
        "exc_text",
        "stack_info",
    }
)


class StructuredFormatter(logging.Formatter):
    """
    JSON formatter for structured logging.

    Outputs logs as JSON with standard fields:
    - timestamp: ISO 8601 format
    - level: Log level
    - logger: Logger name
    - message: Log message
    - request_id: Correlation ID (if available)
    - extra: Any additional context from logging.extra
    """

    def format(self, record: logging.LogRecord) -> str:
        log_entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        request_id = get_request_id()
        if request_id:
            log_entry["request_id"] = request_id

        if record.exc_info:
            log_entry["exception"] = {
                "type": record.exc_info[0].__name__ if record.exc_info[0] else None,
                "message": str(record.exc_info[1]) if record.exc_info[1] else None,
            }

        log_entry["function"] = record.funcName
        log_entry["line"] = record.lineno

        extra_keys = {
            k: v for k, v in record.__dict__.items() if k not in _RESERVED_RECORD_KEYS
        }
        if extra_keys:
            log_entry["extra"] = extra_keys

        return json.dumps(log_entry, default=str)


def configure_structured_logging(level: str = "INFO") -> None:
    """
    Configure root logger with structured JSON formatting.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """
    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    handler = logging.StreamHandler()
    handler.setFormatter(StructuredFormatter())
    root_logger.addHandler(handler)


# ============================================================================
# Prometheus Metrics
# ============================================================================

# Use a custom registry to avoid conflicts with other Prometheus metrics
_registry = CollectorRegistry()


class Metrics:
    """
    Centralized metrics collection.

    Metrics groups:
    - Coordinator: cache hits, in-flight joins, underlying loads
    - Stores: saves by outcome, superseded debounce timers
    - HTTP: reference API request rate and latency
    """

    def __init__(self, registry: CollectorRegistry) -> None:
        self.registry = registry

        # -------------------------------------------------------------------
        # Coordinator Metrics
        # -------------------------------------------------------------------

        # Lookups answered from the TTL cache, from a shared in-flight load,
        # or by starting a new load
        self.coordinator_requests_total = Counter(
            "dashsync_coordinator_requests_total",
            "Coordinated load requests by how they were served",
            ["key", "served_from"],
            registry=self.registry,
        )

        self.coordinator_loads_total = Counter(
            "dashsync_coordinator_loads_total",
            "Underlying load function invocations by outcome",
            ["key", "status"],
            registry=self.registry,
        )

        self.coordinator_load_duration_seconds = Histogram(
            "dashsync_coordinator_load_duration_seconds",
            "Duration of underlying loads in seconds",
            ["key"],
            buckets=(0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
            registry=self.registry,
        )

        self.coordinator_in_flight = Gauge(
            "dashsync_coordinator_in_flight",
            "Loads currently in flight",
            registry=self.registry,
        )

        # -------------------------------------------------------------------
        # Store Metrics
        # -------------------------------------------------------------------

        self.store_saves_total = Counter(
            "dashsync_store_saves_total",
            "Outbound full-state saves by outcome",
            ["endpoint", "status"],
            registry=self.registry,
        )

        self.store_saves_superseded_total = Counter(
            "dashsync_store_saves_superseded_total",
            "Debounced saves cancelled by a newer save request",
            ["endpoint"],
            registry=self.registry,
        )

        # -------------------------------------------------------------------
        # HTTP Metrics (reference API)
        # -------------------------------------------------------------------

        self.http_requests_total = Counter(
            "http_requests_total",
            "Total HTTP requests",
            ["method", "route", "status_code"],
            registry=self.registry,
        )

        self.http_request_duration_seconds = Histogram(
            "http_request_duration_seconds",
            "HTTP request latency in seconds",
            ["method", "route"],
            buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
            registry=self.registry,
        )


# Global metrics instance
metrics = Metrics(_registry)


# ============================================================================
# Middleware
# ============================================================================


class ObservabilityMiddleware(BaseHTTPMiddleware):
    """
    Middleware that adds observability to all reference API requests.

    Features:
    - Generates and propagates request_id (correlation ID)
    - Logs requests with structured fields
    - Records Prometheus metrics
    - Adds request_id to response headers
    """

    def __init__(
        self,
        app: ASGIApp,
        metrics_instance: Metrics | None = None,
        skip_paths: list[str] | None = None,
        request_id_header: str = "X-Request-ID",
    ) -> None:
        super().__init__(app)
        self.request_id_header = request_id_header
        self.metrics = metrics_instance or metrics
        self.skip_paths = set(skip_paths or ["/health", "/metrics"])

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get(self.request_id_header) or generate_request_id()
        set_correlation_id(request_id)

        route = request.url.path
        is_skipped_path = any(route.startswith(path) for path in self.skip_paths)
        logger = logging.getLogger("dashsync.request")

        start_time = time.time()
        try:
            response = await call_next(request)
        except Exception as e:
            latency_ms = (time.time() - start_time) * 1000
            self.metrics.http_requests_total.labels(
                method=request.method, route=route, status_code=500
            ).inc()
            logger.error(
                f"{request.method} {route} - {type(e).__name__}: {e}",
                extra={
                    "method": request.method,
                    "route": route,
                    "status_code": 500,
                    "latency_ms": round(latency_ms, 2),
                },
                exc_info=True,
            )
            raise

        latency_ms = (time.time() - start_time) * 1000
        self.metrics.http_requests_total.labels(
            method=request.method, route=route, status_code=response.status_code
        ).inc()
        self.metrics.http_request_duration_seconds.labels(
            method=request.method, route=route
        ).observe(latency_ms / 1000)

        response.headers[self.request_id_header] = request_id

        if not is_skipped_path:
            logger.info(
                f"{request.method} {route}",
                extra={
                    "method": request.method,
                    "route": route,
                    "status_code": response.status_code,
                    "latency_ms": round(latency_ms, 2),
                },
            )

        return response


def metrics_endpoint() -> Response:
    """
    Prometheus metrics endpoint.

    Returns metrics in Prometheus text format for scraping.
    """
    return Response(
        content=generate_latest(_registry),
        media_type="text/plain; version=0.0.4; charset=utf-8",
    )


def extract_request_context(request: Request) -> dict[str, Any]:
    """Extract observability context from request for logging."""
    return {
        "request_id": get_request_id(),
        "path": request.url.path,
    }
