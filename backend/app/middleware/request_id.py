"""
XFound Backend — Request ID Middleware
========================================

What:  Tags every HTTP request with a short correlation id.
How:   Reuses an incoming X-Request-ID header or generates one, stores it in
       a ContextVar (read by the access log and the exception handlers) and
       echoes it back in the X-Request-ID response header.
"""

import uuid
from contextvars import ContextVar

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

# Coroutine-local, so concurrent requests never see each other's id
request_id_var: ContextVar[str] = ContextVar("request_id", default="")

# Longer client-supplied ids are truncated so log lines stay readable
MAX_REQUEST_ID_LENGTH = 64


def new_request_id() -> str:
    return uuid.uuid4().hex[:8]


class RequestIDMiddleware(BaseHTTPMiddleware):
    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        rid = request.headers.get("X-Request-ID", "").strip()[:MAX_REQUEST_ID_LENGTH] or new_request_id()
        token = request_id_var.set(rid)
        request.state.request_id = rid
        try:
            response = await call_next(request)
        finally:
            request_id_var.reset(token)
        response.headers["X-Request-ID"] = rid
        return response
