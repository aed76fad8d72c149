"""
Pinboard Backend — Request ID Middleware
==========================================

What:  Assigns a correlation id to each request and returns it as X-Request-ID.
Why:   Error bodies carry the id, so a client report can be matched to the
       server log lines of that request.
How:   Reuses a client-supplied X-Request-ID when it is a short token of
       safe characters, otherwise generates one; stores it in a ContextVar
       (for loggers and exception handlers) and on request.state (for route
       handlers).

Accepted client ids:
    1-64 characters from [A-Za-z0-9._-]. Anything else (spaces, markup,
    oversized values) is dropped, because the id is written verbatim into
    log lines, error bodies and a response header.
"""

import re
import uuid
from contextvars import ContextVar
from typing import Optional

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

REQUEST_ID_HEADER = "X-Request-ID"
CLIENT_REQUEST_ID = re.compile(r"^[A-Za-z0-9._-]{1,64}$")

# Coroutine-local: concurrent requests on one event loop each see their own id
request_id_var: ContextVar[str] = ContextVar("request_id", default="")


def client_request_id(request: Request) -> Optional[str]:
    supplied = request.headers.get(REQUEST_ID_HEADER)
    if supplied and CLIENT_REQUEST_ID.match(supplied):
        return supplied
    return None


class RequestIDMiddleware(BaseHTTPMiddleware):

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        rid = client_request_id(request) or uuid.uuid4().hex[:8]

        request_id_var.set(rid)
        request.state.request_id = rid

        response = await call_next(request)
        response.headers[REQUEST_ID_HEADER] = rid
        return response
