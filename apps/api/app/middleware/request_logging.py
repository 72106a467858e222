from __future__ import annotations

import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

from app.metrics import observe_http_request, resolve_http_path_label


logger = logging.getLogger("app.request")


def _request_fields(request: Request, path: str) -> dict[str, object]:
    context = getattr(request.state, "context", None)
    return {
        "method": request.method,
        "path": path,
        "client_ip": getattr(context, "client_ip", None),
        "user_id": getattr(context, "user_id", None),
    }


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Logs one ``http.request`` record per request and feeds the HTTP metrics.

    4xx responses log at WARNING, unhandled errors at ERROR with the traceback.
    """

    async def dispatch(self, request: Request, call_next):  # type: ignore[no-untyped-def]
        started = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception:
            duration_ms = round((time.perf_counter() - started) * 1000, 2)
            path = resolve_http_path_label(request)
            observe_http_request(method=request.method, path=path, status=500, duration=duration_ms / 1000)
            logger.error(
                "http.error",
                exc_info=True,
                extra={**_request_fields(request, path), "status_code": 500, "duration_ms": duration_ms},
            )
            raise

        duration_ms = round((time.perf_counter() - started) * 1000, 2)
        path = resolve_http_path_label(request)
        observe_http_request(method=request.method, path=path, status=response.status_code, duration=duration_ms / 1000)
        level = logging.WARNING if 400 <= response.status_code < 500 else logging.INFO
        logger.log(
            level,
            "http.request",
            extra={**_request_fields(request, path), "status_code": response.status_code, "duration_ms": duration_ms},
        )
        return response
