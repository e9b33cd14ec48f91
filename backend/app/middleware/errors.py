"""
Notes Backend — Error Responses
=================================

What:  Turns any failure into the failure envelope, logging it once.
Why:   A single rendering path keeps every failure body and log line in
       the same shape, whichever layer raised it.
How:   `error_response()` runs the exception through `classify_exception()`
       and renders the result. main.py registers it as the handler for
       every known exception family; `ErrorBoundaryMiddleware` catches
       whatever is left so that even unexpected errors get an envelope,
       a request id and an access log line.
Who:   main.register_exception_handlers, create_app.

Unknown routes are answered here too:
    404 {"success": false, "message": "Route GET /x not found"}

Design Decision:
    Unexpected errors are caught by a middleware placed inside the request
    id and access log middlewares, not by an `Exception` handler. Starlette
    runs `Exception` handlers in its outermost ServerErrorMiddleware, after
    the request id context is reset and without an access log line, and it
    still re-raises the error afterwards.
"""

import logging
from typing import Optional

from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from app.config import settings
from app.exceptions import classify_exception
from app.middleware.request_id import REQUEST_ID_HEADER, current_request_id

logger = logging.getLogger("notes.errors")


def _request_target(request: Request) -> str:
    if request.url.query:
        return f"{request.url.path}?{request.url.query}"
    return request.url.path


def _render(status_code: int, body: dict, headers: Optional[dict] = None) -> JSONResponse:
    headers = dict(headers or {})
    rid = current_request_id()
    if rid:
        headers[REQUEST_ID_HEADER] = rid
    return JSONResponse(status_code=status_code, content=jsonable_encoder(body), headers=headers)


def http_error_response(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Framework HTTP errors (unknown route, wrong method) keep their status."""
    if exc.status_code == 404:
        message = f"Route {request.method} {_request_target(request)} not found"
    else:
        message = exc.detail if isinstance(exc.detail, str) else "Request failed"
    logger.warning("%s %s -> %d: %s", request.method, request.url.path, exc.status_code, message)
    return _render(exc.status_code, {"success": False, "message": message}, getattr(exc, "headers", None))


def error_response(request: Request, exc: Exception) -> JSONResponse:
    """
    Classify `exc`, log it once and build the JSON failure response.

    Outside production the log line carries the traceback and Unclassified
    bodies carry `error` and `stack`.
    """
    if isinstance(exc, StarletteHTTPException):
        return http_error_response(request, exc)

    include_debug = not settings.is_production
    classified = classify_exception(exc, include_debug=include_debug)
    logger.log(
        classified.log_level,
        "%s %s -> %s: %s",
        request.method,
        request.url.path,
        classified.kind.value,
        classified.message if classified.status_code < 500 else f"{classified.message} ({exc!r})",
        exc_info=exc if include_debug else None,
    )
    return _render(classified.status_code, classified.body)


class ErrorBoundaryMiddleware(BaseHTTPMiddleware):
    """Last-resort handler for exceptions no registered handler claimed."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        try:
            return await call_next(request)
        except Exception as exc:
            return error_response(request, exc)
