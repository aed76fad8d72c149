"""
Pinboard Backend — Access Log Middleware
==========================================

What:  One log line per request: method, path, status, duration, request id,
       client IP and, when the session cookie identified someone, the user id.
Why:   Uvicorn's access log has no request-id correlation and no timing.

Log level by status class:
    5xx → ERROR, 4xx → WARNING, everything else → INFO

Not logged: request bodies (passwords, image bytes) and cookies.
"""

import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from pinboard.middleware.request_id import request_id_var

logger = logging.getLogger("pinboard.access")


class RequestLoggingMiddleware(BaseHTTPMiddleware):

    # Probes hit these every few seconds
    QUIET_PATHS = {"/health"}

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        if request.url.path in self.QUIET_PATHS:
            return await call_next(request)

        start_time = time.perf_counter()
        client_ip = request.client.host if request.client else "unknown"
        method = request.method
        path = request.url.path
        rid = request_id_var.get("")

        response = await call_next(request)

        duration_ms = (time.perf_counter() - start_time) * 1000
        status = response.status_code
        if status >= 500:
            log_level = logging.ERROR
        elif status >= 400:
            log_level = logging.WARNING
        else:
            log_level = logging.INFO

        # Set by the auth dependencies when a valid token was presented
        user_id = getattr(request.state, "user_id", None)

        logger.log(
            log_level,
            "%s %s %d %.1fms [%s] from %s%s",
            method,
            path,
            status,
            duration_ms,
            rid,
            client_ip,
            f" user={user_id}" if user_id else "",
            extra={
                "request_id": rid,
                "method": method,
                "path": path,
                "status": status,
                "duration_ms": round(duration_ms, 2),
                "client_ip": client_ip,
            },
        )
        return response
