"""
Route Details Backend: Request ID Middleware
==============================================

What:  Tags every HTTP request (and, via the message server, every inbound
       message) with a short correlation ID that appears in each log line.
How:   The ID lives in a ContextVar, so concurrent requests on one event loop
       never see each other's value. RequestIdFilter copies it onto log
       records as `%(request_id)s`.
Who:   RequestIDMiddleware for HTTP; messaging.server sets the same variable
       from the message id.
"""

import logging
import uuid
from contextvars import ContextVar

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

# ── Context Variable ──────────────────────────────────────────────────────
# coroutine-local: each request task carries its own value
request_id_var: ContextVar[str] = ContextVar("request_id", default="")


class RequestIdFilter(logging.Filter):
    """Adds `request_id` to every record ("-" outside a request)."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not getattr(record, "request_id", None):
            record.request_id = request_id_var.get("") or "-"
        return True


class RequestIDMiddleware(BaseHTTPMiddleware):
    """
    Assigns a request ID and echoes it in the X-Request-ID response header.

    A client-supplied X-Request-ID is reused so a frontend can correlate its
    own error reports with server logs; otherwise an 8-character UUID prefix
    is generated.
    """

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        rid = request.headers.get("X-Request-ID") or str(uuid.uuid4())[:8]
        token = request_id_var.set(rid)
        request.state.request_id = rid
        try:
            response = await call_next(request)
        finally:
            request_id_var.reset(token)
        response.headers["X-Request-ID"] = rid
        return response
