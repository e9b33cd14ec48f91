"""
Notes Client — Error Normalization
====================================

Every failure seen by NotesAPI is raised as an `ApiError`: one shape for
HTTP errors, transport errors and malformed responses, so callers only
ever catch one type.

Code table (HTTP status → code):
    400 BAD_REQUEST       401 UNAUTHORIZED      403 FORBIDDEN
    404 NOT_FOUND         409 CONFLICT          422 VALIDATION_ERROR
    500 SERVER_ERROR      503 SERVICE_UNAVAILABLE
    other statuses        HTTP_ERROR
    no response           NETWORK_ERROR (status 0)
    anything else         UNKNOWN_ERROR (status 0)
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import httpx

NETWORK_ERROR_MESSAGE = "Network error. Please check your connection."
SERVER_ERROR_MESSAGE = "Server error. Please try again later."
VALIDATION_ERROR_MESSAGE = "Please check your input and try again."
NOT_FOUND_MESSAGE = "The requested item was not found."
UNAUTHORIZED_MESSAGE = "You are not authorized to perform this action."
INVALID_RESPONSE_MESSAGE = "Received an invalid response from the server."

STATUS_CODES = {
    400: "BAD_REQUEST",
    401: "UNAUTHORIZED",
    403: "FORBIDDEN",
    404: "NOT_FOUND",
    409: "CONFLICT",
    422: "VALIDATION_ERROR",
    500: "SERVER_ERROR",
    503: "SERVICE_UNAVAILABLE",
}

_STATUS_MESSAGES = {
    400: VALIDATION_ERROR_MESSAGE,
    401: UNAUTHORIZED_MESSAGE,
    404: NOT_FOUND_MESSAGE,
}


def code_for_status(status: int) -> str:
    return STATUS_CODES.get(status, "HTTP_ERROR")


def message_for_status(status: int) -> str:
    return _STATUS_MESSAGES.get(status, SERVER_ERROR_MESSAGE)


class ApiError(Exception):
    """
    Client-side error raised by NotesAPI.

    Attributes:
        message:    Human-readable text, from the server when it sent one
        code:       Stable code from the table above
        status:     HTTP status, 0 when no response arrived
        details:    Field errors `{field, message, value}` from the server
        timestamp:  When the error was observed (UTC ISO 8601)
    """

    def __init__(
        self,
        message: str,
        code: str,
        status: int = 0,
        details: Optional[List[Dict[str, Any]]] = None,
        timestamp: Optional[str] = None,
    ):
        self.message = message
        self.code = code
        self.status = status
        self.details = list(details or [])
        self.timestamp = timestamp or datetime.now(timezone.utc).isoformat()
        super().__init__(message)

    def __repr__(self) -> str:
        return f"ApiError(code={self.code!r}, status={self.status}, message={self.message!r})"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "message": self.message,
            "code": self.code,
            "status": self.status,
            "details": self.details,
            "timestamp": self.timestamp,
        }

    @classmethod
    def from_response(cls, response: httpx.Response) -> "ApiError":
        """Build from an error response, preferring the server's own message."""
        try:
            body = response.json()
        except ValueError:
            body = None
        if not isinstance(body, dict):
            body = {}

        errors = body.get("errors") or []
        message = body.get("message")
        if not message and errors and isinstance(errors[0], dict):
            message = errors[0].get("message")
        return cls(
            message=message or message_for_status(response.status_code),
            code=code_for_status(response.status_code),
            status=response.status_code,
            details=errors if isinstance(errors, list) else [],
        )

    @classmethod
    def from_exception(cls, exc: BaseException) -> "ApiError":
        """Transport failures (no response) become NETWORK_ERROR; the rest UNKNOWN_ERROR."""
        if isinstance(exc, ApiError):
            return exc
        if isinstance(exc, httpx.HTTPStatusError):
            return cls.from_response(exc.response)
        if isinstance(exc, httpx.TransportError):
            return cls(message=NETWORK_ERROR_MESSAGE, code="NETWORK_ERROR", status=0)
        return cls(message=str(exc) or "Unknown error occurred", code="UNKNOWN_ERROR", status=0)
