from time import perf_counter

from prometheus_client import Counter, Histogram
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

REQUEST_COUNT = Counter(
    "orgdocs_http_requests_total",
    "HTTP requests processed",
    ["method", "route", "status"],
)
REQUEST_LATENCY = Histogram(
    "orgdocs_http_request_duration_seconds",
    "HTTP request latency",
    ["method", "route"],
)
AUTHZ_DENIALS = Counter(
    "orgdocs_authorization_denials_total",
    "Requests rejected with 401 or 403",
    ["route", "status"],
)


def _route_template(request: Request) -> str:
    route = request.scope.get("route")
    path = getattr(route, "path", None)
    return path or "unmatched"


class ObservabilityMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        started = perf_counter()
        response = await call_next(request)
        route = _route_template(request)
        REQUEST_LATENCY.labels(request.method, route).observe(perf_counter() - started)
        REQUEST_COUNT.labels(request.method, route, str(response.status_code)).inc()
        if response.status_code in (401, 403):
            AUTHZ_DENIALS.labels(route, str(response.status_code)).inc()
        return response
