"""HTTP middleware for the read API.

Three layers wrap every request (outermost first):
- CorrelationIdMiddleware: per-request ID for log correlation
- RequestLoggingMiddleware: access log plus request/error/latency metrics
- CacheControlMiddleware: browser caching hints for date-keyed reads
"""

import time
import uuid
from collections.abc import Callable

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

from pmp.cache.base import is_valid_date
from pmp.common.logging import clear_correlation_id, get_logger, set_correlation_id
from pmp.common.metrics import create_component_metrics

logger = get_logger(__name__, component="api")
metrics = create_component_metrics("api")

CORRELATION_HEADER = "X-Correlation-ID"

# Path prefix -> max-age for successful GETs
FRESHNESS_SECONDS: tuple[tuple[str, int], ...] = (
    ("/api/cables", 30),
    ("/api/exchanges", 30),
    ("/api/dates", 30),
)

NO_STORE = "no-store"
NO_CACHE = "no-cache, no-store, must-revalidate"


def normalize_path(path: str) -> str:
    """Collapse date segments so metric labels stay low-cardinality.

    /api/cables/2026-02-28 -> /api/cables/:date
    """
    segments = [
        ":date" if is_valid_date(segment) else segment
        for segment in path.split("/")
        if segment
    ]
    return "/" + "/".join(segments)


def cache_policy(method: str, path: str, status_code: int) -> str:
    """Cache-Control value for a finished response.

    Entries and date lists may be reused briefly; status, health, metrics and
    the sync trigger are always fetched fresh. Errors and writes are never stored.
    """
    if method != "GET" or status_code >= 400:
        return NO_STORE

    for prefix, seconds in FRESHNESS_SECONDS:
        if path.startswith(prefix):
            return f"private, max-age={seconds}"
    return NO_CACHE


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    """Bind an X-Correlation-ID to the request's logging context.

    An incoming header value is reused as-is; otherwise a short random ID is
    generated. The ID is echoed back on the response.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        correlation_id = request.headers.get(CORRELATION_HEADER) or uuid.uuid4().hex[:8]

        set_correlation_id(correlation_id)
        try:
            response = await call_next(request)
        finally:
            clear_correlation_id()

        response.headers[CORRELATION_HEADER] = correlation_id
        return response


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Access log and RED metrics for every request.

    Metrics (labels: method, endpoint, status_code / error_type):
    - pmp_http_requests_total
    - pmp_http_request_duration_seconds
    - pmp_http_request_errors_total (4xx, 5xx and unhandled exceptions)
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        method = request.method
        endpoint = normalize_path(request.url.path)
        started = time.perf_counter()

        try:
            response = await call_next(request)
        except Exception as err:
            logger.error("Unhandled error while serving request", path=request.url.path, error=str(err))
            self._count_error(method, endpoint, type(err).__name__)
            raise

        elapsed = time.perf_counter() - started
        status_code = response.status_code

        labels = {"method": method, "endpoint": endpoint, "status_code": str(status_code)}
        metrics.increment("http_requests_total", labels=labels)
        metrics.histogram("http_request_duration_seconds", elapsed, labels=labels)

        if status_code >= 500:
            self._count_error(method, endpoint, "server_error")
        elif status_code >= 400:
            self._count_error(method, endpoint, "client_error")

        emit = logger.warning if status_code >= 400 else logger.info
        emit(
            "Request served",
            method=method,
            path=request.url.path,
            status_code=status_code,
            duration_ms=round(elapsed * 1000, 2),
        )
        return response

    @staticmethod
    def _count_error(method: str, endpoint: str, error_type: str) -> None:
        metrics.increment(
            "http_request_errors_total",
            labels={"method": method, "endpoint": endpoint, "error_type": error_type},
        )


class CacheControlMiddleware(BaseHTTPMiddleware):
    """Set Cache-Control on every response according to cache_policy()."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        response = await call_next(request)
        response.headers["Cache-Control"] = cache_policy(
            request.method, request.url.path, response.status_code,
        )
        return response
