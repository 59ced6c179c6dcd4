from __future__ import annotations

import logging
import time
from typing import Any

from opentelemetry import trace
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

from subcost.metrics import observe_http_request, resolve_http_path_label


logger = logging.getLogger("subcost.request")


def _elapsed_ms(started: float) -> float:
    return round((time.perf_counter() - started) * 1000, 2)


def _request_context(request: Request, status_code: int, duration_ms: float) -> dict[str, Any]:
    context: dict[str, Any] = {
        "method": request.method,
        "path": resolve_http_path_label(request),
        "status_code": status_code,
        "duration_ms": duration_ms,
    }
    # Path params are only resolved once routing has run.
    subscription_id = request.path_params.get("subscription_id")
    if subscription_id:
        context["subscription_id"] = str(subscription_id)
        span = trace.get_current_span()
        if span.is_recording():
            span.set_attribute("subscription_id", context["subscription_id"])
    return context


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):  # type: ignore[no-untyped-def]
        started = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception:
            context = _request_context(request, 500, _elapsed_ms(started))
            observe_http_request(context["method"], context["path"], 500, context["duration_ms"] / 1000)
            logger.error("http.error", exc_info=True, extra=context)
            raise

        context = _request_context(request, response.status_code, _elapsed_ms(started))
        observe_http_request(context["method"], context["path"], response.status_code, context["duration_ms"] / 1000)
        log = logger.warning if response.status_code >= 500 else logger.info
        log("http.request", extra=context)
        return response
