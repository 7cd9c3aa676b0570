"""
Prometheus Metrics Middleware for FastAPI

Collects HTTP request metrics for Prometheus monitoring:
- Request duration histograms (for P50, P95, P99 percentiles)
- Request counts by endpoint and status code
- Active requests gauge

Endpoints are labelled by route template (/api/v1/strategies/{strategy_id})
rather than the raw path, so ids do not create new label values.

Author: Quant Desk Development Team
Version: 1.0.0
"""

import time
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from prometheus_client import Counter, Histogram, Gauge
from loguru import logger


# Request Duration Histogram
# Buckets cover typical API response times (5ms to 10s)
REQUEST_DURATION = Histogram(
    'http_request_duration_seconds',
    'HTTP request duration in seconds',
    ['method', 'endpoint', 'status_code'],
    buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0)
)

# Request Count Counter
REQUEST_COUNT = Counter(
    'http_requests_total',
    'Total HTTP requests',
    ['method', 'endpoint', 'status_code']
)

# Active Requests Gauge (route is unknown until routing completes)
REQUESTS_IN_PROGRESS = Gauge(
    'http_requests_in_progress',
    'HTTP requests currently being processed',
    ['method']
)

UNMATCHED_ENDPOINT = 'unmatched'


def route_template(request: Request) -> str:
    """Path template of the matched route, or 'unmatched'"""
    route = request.scope.get('route')
    return getattr(route, 'path', None) or UNMATCHED_ENDPOINT


class PrometheusMiddleware(BaseHTTPMiddleware):
    """
    Starlette middleware for collecting Prometheus metrics.

    Usage:
        app.add_middleware(PrometheusMiddleware)
    """

    def __init__(self, app, exclude_paths: set = None):
        """
        Args:
            app: FastAPI/Starlette application
            exclude_paths: Set of paths to exclude from metrics (e.g., {'/metrics', '/health'})
        """
        super().__init__(app)
        self.exclude_paths = exclude_paths or {'/metrics', '/metrics/'}

    def _record(self, method: str, endpoint: str, status_code: int, duration: float):
        REQUEST_DURATION.labels(
            method=method,
            endpoint=endpoint,
            status_code=status_code
        ).observe(duration)

        REQUEST_COUNT.labels(
            method=method,
            endpoint=endpoint,
            status_code=status_code
        ).inc()

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        method = request.method

        if request.url.path in self.exclude_paths:
            return await call_next(request)

        start_time = time.time()
        REQUESTS_IN_PROGRESS.labels(method=method).inc()

        try:
            response = await call_next(request)
            self._record(method, route_template(request), response.status_code, time.time() - start_time)
            return response

        except Exception as e:
            endpoint = route_template(request)
            self._record(method, endpoint, 500, time.time() - start_time)
            logger.error(f"Request failed: {method} {endpoint} - {e}")
            raise

        finally:
            # Always decrement active requests (prevent gauge drift)
            REQUESTS_IN_PROGRESS.labels(method=method).dec()
