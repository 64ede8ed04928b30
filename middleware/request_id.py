"""
Request ID middleware for correlating the log lines of one request.

The id lives in a context variable, so concurrent requests on the same
event loop never see each other's id.
"""

import logging
import uuid
from contextvars import ContextVar
from typing import Optional

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

request_id_var: ContextVar[Optional[str]] = ContextVar("request_id", default=None)

_base_factory = logging.getLogRecordFactory()


def _record_factory(*args, **kwargs):
    record = _base_factory(*args, **kwargs)
    record.request_id = request_id_var.get()
    return record


logging.setLogRecordFactory(_record_factory)


class RequestIDMiddleware(BaseHTTPMiddleware):
    """
    Uses the client's X-Request-ID when given, otherwise a new UUID; stores
    it on request.state and echoes it back in the response headers.
    """

    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        request.state.request_id = request_id

        token = request_id_var.set(request_id)
        try:
            response: Response = await call_next(request)
            response.headers["X-Request-ID"] = request_id
            return response
        finally:
            request_id_var.reset(token)


def get_request_id(request: Request) -> str:
    """Request id from request state, or "no-request-id" outside the middleware."""
    return getattr(request.state, "request_id", "no-request-id")
