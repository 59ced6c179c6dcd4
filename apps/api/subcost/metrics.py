from __future__ import annotations

import re

from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest
from starlette.requests import Request


http_requests_total = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "path", "status"],
)

http_request_duration_seconds = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "path"],
)

subscription_writes_total = Counter(
    "subscription_writes_total",
    "Total subscription writes by action",
    ["action"],
)

subscription_sum_total = Counter(
    "subscription_sum_total",
    "Total billed-sum computations by strategy",
    ["strategy"],
)

subscription_sum_overflow_total = Counter(
    "subscription_sum_overflow_total",
    "Total billed-sum computations rejected for exceeding the 64-bit range",
    ["strategy"],
)


_UUID_RE = re.compile(
    r"\b[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[1-5][0-9a-fA-F]{3}-[89abAB][0-9a-fA-F]{3}-[0-9a-fA-F]{12}\b"
)
_PATH_PARAM_RE = re.compile(r"\{[^{}]+\}")


def _normalize_route_template(path: str) -> str:
    return _PATH_PARAM_RE.sub("{id}", path)


def _sanitize_path(path: str) -> str:
    return _UUID_RE.sub("{id}", path)


def resolve_http_path_label(request: Request) -> str:
    route = request.scope.get("route")
    if route is not None:
        path_format = getattr(route, "path_format", None)
        if isinstance(path_format, str) and path_format:
            return _normalize_route_template(path_format)
        route_path = getattr(route, "path", None)
        if isinstance(route_path, str) and route_path:
            return _normalize_route_template(route_path)
    return _sanitize_path(request.url.path)


def observe_http_request(method: str, path: str, status: int, duration: float) -> None:
    status_str = str(status)
    http_requests_total.labels(method=method, path=path, status=status_str).inc()
    http_request_duration_seconds.labels(method=method, path=path).observe(duration)


def observe_subscription_write(action: str) -> None:
    subscription_writes_total.labels(action=action).inc()


def observe_subscription_sum(strategy: str) -> None:
    subscription_sum_total.labels(strategy=strategy).inc()


def observe_subscription_sum_overflow(strategy: str) -> None:
    subscription_sum_overflow_total.labels(strategy=strategy).inc()


def generate_metrics_payload() -> bytes:
    return generate_latest()


def metrics_content_type() -> str:
    return CONTENT_TYPE_LATEST
