# rental_lifecycle/middleware/structured_logging.py
from __future__ import annotations

import logging
import time
from typing import Callable, Optional

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from ..config import settings

log = logging.getLogger("rental_lifecycle.request")


class StructuredLoggingMiddleware(BaseHTTPMiddleware):
    """
    One log line per request: method, path, status_code, latency_ms and the
    acting user id taken from the trusted actor header.

    Must sit inside RequestIDMiddleware so request.state.request_id is set.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        t0 = time.perf_counter()
        actor: Optional[str] = request.headers.get(settings.actor_header)

        status_code = 500
        try:
            response = await call_next(request)
            status_code = response.status_code
            return response
        finally:
            latency_ms = int((time.perf_counter() - t0) * 1000)
            log.info(
                "http_request",
                extra={
                    "event": "http_request",
                    "actor_id": actor,
                    "method": request.method,
                    "path": request.url.path,
                    "status_code": status_code,
                    "latency_ms": latency_ms,
                },
            )
