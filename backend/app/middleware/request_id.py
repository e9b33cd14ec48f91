"""
Notes Backend — Request ID Middleware
=======================================

What:  Gives every request a correlation id and echoes it back in the
       `X-Request-ID` response header.
Why:   One id ties together the access line, the error line and the
       client's own report of a failed request.
How:   Reuses the id the client sent, or generates a short one. The id is
       kept in a ContextVar so log lines and error responses anywhere in
       the request can pick it up.
"""

import uuid
from contextvars import ContextVar

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

REQUEST_ID_HEADER = "X-Request-ID"

# Coroutine-local: concurrent requests on one event loop each see their own id
request_id_var: ContextVar[str] = ContextVar("request_id", default="")


def current_request_id() -> str:
    return request_id_var.get("")


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Assigns, stores and returns the request correlation id."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        rid = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex[:8]
        token = request_id_var.set(rid)
        request.state.request_id = rid
        try:
            response = await call_next(request)
        finally:
            request_id_var.reset(token)

        response.headers[REQUEST_ID_HEADER] = rid
        return response
