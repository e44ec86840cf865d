from __future__ import annotations

import time

from fastapi import Request
from prometheus_client import CONTENT_TYPE_LATEST, Counter, Gauge, Histogram, generate_latest
from starlette.responses import Response

from lifesearch.app.settings import settings

HTTP_REQUESTS = Counter(
    "lifesearch_http_requests_total",
    "HTTP requests served by the search API",
    ["method", "route", "status"],
)
HTTP_LATENCY = Histogram(
    "lifesearch_http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "route"],
    buckets=(0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.0, 5.0, 10.0),
)
HTTP_IN_FLIGHT = Gauge(
    "lifesearch_http_requests_in_flight",
    "HTTP requests currently being handled",
)
SEARCH_REQUESTS = Counter(
    "lifesearch_search_requests_total",
    "Search requests by answer source",
    ["source"],
)


def _route_template(request: Request) -> str:
    # /lifelogs/{doc_id} rather than one label per document id
    route = request.scope.get("route")
    return getattr(route, "path", None) or request.url.path


def record_search_request(cached: bool) -> None:
    if settings.metrics_enabled:
        SEARCH_REQUESTS.labels("history" if cached else "engine").inc()


async def metrics_middleware(request: Request, call_next):
    if not settings.metrics_enabled or request.url.path == "/metrics":
        return await call_next(request)
    started = time.monotonic()
    status_code = 500
    HTTP_IN_FLIGHT.inc()
    try:
        response = await call_next(request)
        status_code = response.status_code
        return response
    finally:
        HTTP_IN_FLIGHT.dec()
        route = _route_template(request)
        HTTP_REQUESTS.labels(request.method, route, str(status_code)).inc()
        HTTP_LATENCY.labels(request.method, route).observe(time.monotonic() - started)


def metrics_response() -> Response:
    if not settings.metrics_enabled:
        return Response(status_code=404)
    return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)
