"""
Notes Backend — Exception Hierarchy & Error Classification
============================================================

What:  Application-specific exceptions plus `classify_exception()`, the one
       place that turns any failure into an HTTP status and response body.
Why:   Services raise domain errors and never build responses, so status
       codes and bodies are decided in exactly one place.
How:   Each exception carries a message and optional context dict. The
       handlers registered in main.py pass every failure (our own
       exceptions, request validation errors, SQLAlchemy errors, anything
       else) through `classify_exception()` exactly once.
Who:   Raised by schemas, routes, services and the ORM model; consumed by
       `register_exception_handlers`.

Exception Hierarchy:
    NotesAppError (base)
    ├── ValidationError             → 400 ValidationFailure
    │   └── StoreValidationError    → 400 (raised by the ORM model)
    ├── MalformedIdentifierError    → 400 MalformedIdentifier
    ├── NotFoundError               → 404 NotFound
    ├── StoreUnavailableError       → 503 StoreUnavailable
    ├── DuplicateConflictError      → 409 DuplicateConflict
    └── AuthFailureError            → 401 AuthFailure (reserved)
    anything else                   → 500 Unclassified
"""

import logging
import re
import traceback
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from fastapi.exceptions import RequestValidationError
from sqlalchemy import exc as sa_exc

# ── Messages ──────────────────────────────────────────────────────────────
VALIDATION_ERROR_MESSAGE = "Validation error occurred"
INVALID_ID_MESSAGE = "Invalid ID format provided"
NOTE_NOT_FOUND_MESSAGE = "Note not found"
STORE_UNAVAILABLE_MESSAGE = "Database service is not available"
INTERNAL_ERROR_MESSAGE = "Internal server error occurred"
AUTH_FAILURE_MESSAGE = "Invalid authentication token"


class NotesAppError(Exception):
    """
    Base exception for all application errors.

    Attributes:
        message:  User-facing error description (safe to return in API response)
        context:  Additional debug info (logged but NOT returned to client)
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.context = context or {}
        super().__init__(self.message)


class ValidationError(NotesAppError):
    """
    Raised when input breaks a field rule.

    Carries a list of `{field, message, value}` entries so the client can
    highlight the offending inputs.
    """

    def __init__(
        self,
        errors: Optional[List[Dict[str, Any]]] = None,
        message: str = VALIDATION_ERROR_MESSAGE,
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)
        self.errors = list(errors or [])

    @classmethod
    def for_field(cls, field_name: str, message: str, value: Any = None) -> "ValidationError":
        return cls(errors=[{"field": field_name, "message": message, "value": value}])


class StoreValidationError(ValidationError):
    """Raised by the ORM model when a value reaching the store breaks a schema rule."""


class MalformedIdentifierError(NotesAppError):
    """Raised when an id does not have the store's identifier shape (a UUID)."""

    def __init__(self, value: Any, field: str = "id", message: str = INVALID_ID_MESSAGE):
        super().__init__(message=message, context={"field": field, "value": value})
        self.field = field
        self.value = value


class NotFoundError(NotesAppError):
    """
    Raised when a well-formed id resolves to nothing.

    SQLAlchemy returns None for missing rows; the service converts that
    None into this exception so the handlers can answer 404.
    """

    def __init__(
        self,
        message: str = NOTE_NOT_FOUND_MESSAGE,
        resource_id: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if resource_id:
            ctx["resource_id"] = resource_id
        super().__init__(message=message, context=ctx)


class StoreUnavailableError(NotesAppError):
    """Raised when the database cannot be reached."""

    def __init__(
        self,
        message: str = STORE_UNAVAILABLE_MESSAGE,
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class DuplicateConflictError(NotesAppError):
    """
    Raised when a uniqueness constraint is violated.

    No note column besides the generated id is unique today, so nothing
    raises this yet; the taxonomy entry is kept for future unique fields.
    """

    def __init__(self, field: str, value: Any = None):
        super().__init__(
            message=f"Duplicate value for field: {field}",
            context={"field": field, "value": value},
        )
        self.field = field
        self.value = value


class AuthFailureError(NotesAppError):
    """Reserved for authentication failures (no authentication exists yet)."""

    def __init__(self, message: str = AUTH_FAILURE_MESSAGE):
        super().__init__(message=message)


# ══════════════════════════════════════════════════════════════════════════
# Classification
# ══════════════════════════════════════════════════════════════════════════


class ErrorKind(str, Enum):
    VALIDATION_FAILURE = "ValidationFailure"
    MALFORMED_IDENTIFIER = "MalformedIdentifier"
    NOT_FOUND = "NotFound"
    STORE_UNAVAILABLE = "StoreUnavailable"
    DUPLICATE_CONFLICT = "DuplicateConflict"
    AUTH_FAILURE = "AuthFailure"
    UNCLASSIFIED = "Unclassified"


@dataclass
class ClassifiedError:
    """Outcome of classifying one failure: taxonomy kind, status and body."""

    kind: ErrorKind
    status_code: int
    message: str
    body: Dict[str, Any] = field(default_factory=dict)

    @property
    def log_level(self) -> int:
        return logging.ERROR if self.status_code >= 500 else logging.WARNING


_STORE_UNAVAILABLE_TYPES = (
    sa_exc.OperationalError,
    sa_exc.InterfaceError,
    sa_exc.DisconnectionError,
    sa_exc.TimeoutError,
    ConnectionError,
    TimeoutError,
    OSError,
)

# PostgreSQL: Key (title)=(Groceries) already exists.
_PG_KEY_DETAIL = re.compile(r"Key \((?P<field>[^)]+)\)=\((?P<value>[^)]*)\)")
# SQLite: UNIQUE constraint failed: notes.title
_SQLITE_UNIQUE = re.compile(r"UNIQUE constraint failed: \w+\.(?P<field>\w+)")
# SQLite: NOT NULL constraint failed: notes.title / PostgreSQL: column "title"
_CONSTRAINT_COLUMN = re.compile(r'(?:constraint failed: \w+\.(?P<a>\w+))|(?:column "(?P<b>\w+)")')


def field_errors_from_request(exc: RequestValidationError) -> List[Dict[str, Any]]:
    """
    Translates FastAPI/pydantic errors into `{field, message, value}` entries.

    loc is ("body", "title"), ("query", "limit"), ("path", "note_id") or
    just ("body",) for model-level rules.
    """
    entries = []
    for error in exc.errors():
        loc = [str(part) for part in error.get("loc", ())]
        field_name = ".".join(loc[1:]) if len(loc) > 1 else (loc[0] if loc else "body")
        message = error.get("msg", "Invalid value")
        value = error.get("input")
        if error.get("type") == "missing":
            message = f"{field_name[:1].upper()}{field_name[1:]} is required"
            value = None
        entries.append({"field": field_name, "message": message, "value": value})
    return entries


def _classify_integrity_error(exc: sa_exc.IntegrityError) -> ClassifiedError:
    text = str(exc.orig) if exc.orig is not None else str(exc)
    lowered = text.lower()
    if "unique" in lowered or "duplicate" in lowered:
        match = _PG_KEY_DETAIL.search(text)
        if match:
            conflict = DuplicateConflictError(match.group("field"), match.group("value"))
        else:
            sqlite_match = _SQLITE_UNIQUE.search(text)
            conflict = DuplicateConflictError(sqlite_match.group("field") if sqlite_match else "unknown")
        return _classify_app_error(conflict)

    column = _CONSTRAINT_COLUMN.search(text)
    field_name = (column.group("a") or column.group("b")) if column else "body"
    return _classify_app_error(ValidationError.for_field(field_name, "Value violates a store constraint"))


def _classify_app_error(exc: NotesAppError) -> ClassifiedError:
    if isinstance(exc, ValidationError):
        return ClassifiedError(
            ErrorKind.VALIDATION_FAILURE,
            400,
            exc.message,
            {"success": False, "message": exc.message, "errors": exc.errors},
        )
    if isinstance(exc, MalformedIdentifierError):
        return ClassifiedError(
            ErrorKind.MALFORMED_IDENTIFIER,
            400,
            exc.message,
            {"success": False, "message": exc.message, "field": exc.field, "value": exc.value},
        )
    if isinstance(exc, NotFoundError):
        return ClassifiedError(ErrorKind.NOT_FOUND, 404, exc.message, {"success": False, "message": exc.message})
    if isinstance(exc, StoreUnavailableError):
        return ClassifiedError(
            ErrorKind.STORE_UNAVAILABLE, 503, exc.message, {"success": False, "message": exc.message}
        )
    if isinstance(exc, DuplicateConflictError):
        return ClassifiedError(
            ErrorKind.DUPLICATE_CONFLICT,
            409,
            exc.message,
            {"success": False, "message": exc.message, "field": exc.field, "value": exc.value},
        )
    if isinstance(exc, AuthFailureError):
        return ClassifiedError(ErrorKind.AUTH_FAILURE, 401, exc.message, {"success": False, "message": exc.message})
    return _unclassified(exc, include_debug=False)


def _unclassified(exc: BaseException, include_debug: bool) -> ClassifiedError:
    body: Dict[str, Any] = {"success": False, "message": INTERNAL_ERROR_MESSAGE}
    if include_debug:
        body["error"] = str(exc)
        body["stack"] = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
    return ClassifiedError(ErrorKind.UNCLASSIFIED, 500, INTERNAL_ERROR_MESSAGE, body)


def classify_exception(exc: BaseException, include_debug: bool = False) -> ClassifiedError:
    """
    Map any failure to the fixed taxonomy.

    Args:
        exc:            The failure raised while handling a request.
        include_debug:  Add `error` and `stack` to Unclassified bodies
                        (never in production).
    """
    if isinstance(exc, RequestValidationError):
        return _classify_app_error(ValidationError(errors=field_errors_from_request(exc)))
    if isinstance(exc, NotesAppError):
        if type(exc) is NotesAppError:
            return _unclassified(exc, include_debug)
        return _classify_app_error(exc)
    if isinstance(exc, sa_exc.IntegrityError):
        return _classify_integrity_error(exc)
    if isinstance(exc, sa_exc.DBAPIError) and exc.connection_invalidated:
        return _classify_app_error(StoreUnavailableError())
    if isinstance(exc, _STORE_UNAVAILABLE_TYPES):
        return _classify_app_error(StoreUnavailableError())
    return _unclassified(exc, include_debug)
