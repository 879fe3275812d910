"""
Praxis OS Backend: Request Logging Middleware
==============================================

What:  One access log line per request: method, path, status, duration,
       request id and the authenticated caller id (when the Session Resolver
       established one).
How:   Level chosen by status class: 5xx ERROR, 4xx WARNING, else INFO.
       /health is skipped.

What we log vs what we DON'T log:
    ✅ Log: method, path, status, duration, request id, caller id
    ❌ Don't log: request bodies (patient data), cookies, Authorization or
       x-cron-secret headers, query strings (names and birth dates)
"""

import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from praxis.middleware.request_id import request_id_var

logger = logging.getLogger("praxis.access")


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        path = request.url.path
        if path == "/health":
            return await call_next(request)

        start_time = time.perf_counter()
        method = request.method
        rid = request_id_var.get("")

        response = await call_next(request)

        duration_ms = (time.perf_counter() - start_time) * 1000
        # Set by the Session Resolver; absent for anonymous and secret-guarded routes
        caller_id = getattr(request.state, "caller_id", None) or "-"

        status = response.status_code
        if status >= 500:
            log_level = logging.ERROR
        elif status >= 400:
            log_level = logging.WARNING
        else:
            log_level = logging.INFO

        logger.log(
            log_level,
            "%s %s %d %.1fms [%s] caller=%s",
            method,
            path,
            status,
            duration_ms,
            rid,
            caller_id,
            extra={
                "request_id": rid,
                "method": method,
                "path": path,
                "status": status,
                "duration_ms": round(duration_ms, 2),
                "caller_id": caller_id,
            },
        )

        return response
