import logging
from time import perf_counter

from prometheus_client import Counter, Histogram
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

logger = logging.getLogger("app.http")

REQUEST_COUNT = Counter(
    "docvault_http_requests_total",
    "HTTP requests handled",
    ["method", "path", "status_code"],
)
REQUEST_LATENCY = Histogram(
    "docvault_http_request_duration_seconds",
    "HTTP request latency in seconds",
    ["method", "path"],
)


def _route_path(request: Request) -> str:
    # Use the route template so metric labels stay bounded.
    route = request.scope.get("route")
    path = getattr(route, "path", None)
    return path or request.url.path


class ObservabilityMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        started = perf_counter()
        try:
            response = await call_next(request)
        except Exception:
            duration = perf_counter() - started
            path = _route_path(request)
            REQUEST_COUNT.labels(request.method, path, "500").inc()
            REQUEST_LATENCY.labels(request.method, path).observe(duration)
            logger.error(
                "%s %s - 500 - %.1fms",
                request.method,
                request.url.path,
                duration * 1000,
            )
            raise

        duration = perf_counter() - started
        path = _route_path(request)
        actor_id = getattr(request.state, "actor_id", None) or "anonymous"
        REQUEST_COUNT.labels(request.method, path, str(response.status_code)).inc()
        REQUEST_LATENCY.labels(request.method, path).observe(duration)
        logger.info(
            "%s %s - User: %s - %s - %.1fms",
            request.method,
            request.url.path,
            actor_id,
            response.status_code,
            duration * 1000,
            extra={
                "method": request.method,
                "path": request.url.path,
                "status_code": response.status_code,
                "duration_ms": round(duration * 1000, 1),
                "actor_id": actor_id,
            },
        )
        return response
