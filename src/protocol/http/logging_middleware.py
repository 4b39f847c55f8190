from __future__ import annotations

import logging
import time
import uuid
from typing import Callable, Optional

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request


logger = logging.getLogger(__name__)

REQUEST_ID_HEADER = "x-request-id"
MAX_REQUEST_ID_LEN = 64
# Probes are logged at DEBUG so they do not drown out game traffic
QUIET_PATHS = frozenset({"/healthz"})


def _incoming_request_id(value: Optional[str]) -> Optional[str]:
    if not value:
        return None
    value = value.strip()
    if not value or len(value) > MAX_REQUEST_ID_LEN or not value.isprintable():
        return None
    return value


class RequestIDLoggingMiddleware(BaseHTTPMiddleware):
    """Tag each request with an ID (the caller's ``x-request-id`` if sane) and log its timing."""

    async def dispatch(self, request: Request, call_next: Callable):
        started = time.perf_counter()
        request_id = _incoming_request_id(request.headers.get(REQUEST_ID_HEADER)) or uuid.uuid4().hex
        request.state.request_id = request_id
        level = logging.DEBUG if request.url.path in QUIET_PATHS else logging.INFO

        logger.log(
            level,
            "%s %s",
            request.method,
            request.url.path,
            extra={"request_id": request_id},
        )
        response = await call_next(request)
        response.headers[REQUEST_ID_HEADER] = request_id
        logger.log(
            level,
            "%s %s -> %d",
            request.method,
            request.url.path,
            response.status_code,
            extra={
                "request_id": request_id,
                "elapsed_ms": int((time.perf_counter() - started) * 1000),
            },
        )
        return response
