"""
Prometheus Metrics Middleware
==============================
Exposes application metrics for monitoring.
"""
import time
from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST
from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

UNMATCHED_PATH = "unmatched"

# Define metrics
http_requests_total = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "path", "status"]
)

http_request_duration_seconds = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "path"]
)

auth_events_total = Counter(
    "auth_events_total",
    "Account and session lifecycle events",
    ["event", "outcome"]
)


def record_auth_event(event: str, outcome: str) -> None:
    auth_events_total.labels(event=event, outcome=outcome).inc()


class PrometheusMiddleware(BaseHTTPMiddleware):
    """Middleware to collect HTTP request metrics."""

    async def dispatch(self, request: Request, call_next):
        # Skip metrics endpoint itself
        if request.url.path == "/metrics":
            return await call_next(request)

        start_time = time.time()

        response = await call_next(request)

        duration = time.time() - start_time

        # Label by route template so per-user paths don't explode cardinality
        route = request.scope.get("route")
        path = getattr(route, "path", UNMATCHED_PATH)

        http_requests_total.labels(
            method=request.method,
            path=path,
            status=response.status_code
        ).inc()

        http_request_duration_seconds.labels(
            method=request.method,
            path=path
        ).observe(duration)

        return response


async def metrics_endpoint(request: Request):
    """Endpoint to expose Prometheus metrics."""
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST
    )
