"""
Praxis OS Backend: Request ID Middleware
=========================================

What:  Assigns a short correlation id to each request and returns it in the
       X-Request-ID response header.
How:   Accepts a client-provided X-Request-ID, otherwise generates one; stores
       it in a ContextVar for loggers and in request.state for handlers.
Who:   Applied to every request; first middleware in the chain.

The id is never part of the JSON body. Support asks users for the header
value from the browser's network tab.
"""

import uuid
from contextvars import ContextVar

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

# ── Context Variable ──────────────────────────────────────────────────────
# Coroutine-local: concurrent requests on the same thread each see their own id
request_id_var: ContextVar[str] = ContextVar("request_id", default="")

MAX_CLIENT_ID_LENGTH = 64


class RequestIDMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        rid = request.headers.get("X-Request-ID", "")[:MAX_CLIENT_ID_LENGTH] or str(uuid.uuid4())[:8]

        request_id_var.set(rid)
        request.state.request_id = rid

        response = await call_next(request)
        response.headers["X-Request-ID"] = rid
        return response
