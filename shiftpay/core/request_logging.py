# shiftpay/core/request_logging.py
"""
Per-request id and access log.

Every request gets an id, taken from the client's X-Request-ID header when
present. The id is returned in the response header, stored on
request.state for the error handlers, and attached to every log record the
request produces.
"""

import logging
import time
import uuid
from collections.abc import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from shiftpay.core.logging_config import LogContext, get_logger

logger = get_logger(__name__)

#: Header carrying the request id, honoured when the client sends one.
REQUEST_ID_HEADER = "X-Request-ID"

#: Paths polled by monitoring, logged at DEBUG only.
QUIET_PATHS = frozenset({"/health"})


def _access_level(path: str, status_code: int, failed: bool) -> int:
    if failed or status_code >= 500:
        return logging.ERROR
    if status_code >= 400:
        return logging.WARNING
    if path in QUIET_PATHS:
        return logging.DEBUG
    return logging.INFO


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Logs method, path, status and duration of every request."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
        request.state.request_id = request_id
        path = request.url.path

        started = time.perf_counter()
        status_code = 500
        failed = True
        with LogContext(request_id=request_id):
            try:
                response = await call_next(request)
                status_code = response.status_code
                failed = False
            finally:
                elapsed_ms = (time.perf_counter() - started) * 1000
                logger.log(
                    _access_level(path, status_code, failed),
                    "%s %s -> %d in %.1fms",
                    request.method,
                    path,
                    status_code,
                    elapsed_ms,
                    exc_info=failed,
                    extra={
                        "extra_fields": {
                            "method": request.method,
                            "path": path,
                            "status_code": status_code,
                            "duration_ms": round(elapsed_ms, 1),
                        }
                    },
                )

        response.headers[REQUEST_ID_HEADER] = request_id
        return response
