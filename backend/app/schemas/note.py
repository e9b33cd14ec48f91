"""
Notes Backend — Pydantic Request/Response Schemas
===================================================

What:  Pydantic models defining the API contract between client and backend.
Why:   Request rules run before any store access, so invalid input never
       costs a database round trip.
How:   FastAPI validates request bodies against the *Create/*Update models
       and serializes responses through the *Read/*Envelope models. Every
       model uses camelCase aliases on the wire and snake_case in Python.
Who:   Route handlers (notes.py, health.py) and the client package.
When:  Validated on every request (input) and serialized on every response (output).

Sanitization order for note bodies:
    1. Every top-level string is trimmed
    2. Field rules run (required, length bounds, tag count)
    3. Title and content are HTML-escaped for storage

Validation errors raised here surface as RequestValidationError and are
classified as ValidationFailure with one `{field, message, value}` entry
per violation.
"""

import uuid
from datetime import datetime
from html import escape
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel
from pydantic_core import PydanticCustomError

from app.models.note import (
    CONTENT_MAX_LENGTH,
    CONTENT_MIN_LENGTH,
    MAX_TAGS,
    TITLE_MAX_LENGTH,
    TITLE_MIN_LENGTH,
    as_utc,
)


class CamelModel(BaseModel):
    """Base model: camelCase on the wire, snake_case attribute names."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class TrimmedModel(CamelModel):
    """Request body base: trims every top-level string before field rules run."""

    @model_validator(mode="before")
    @classmethod
    def trim_strings(cls, data: Any) -> Any:
        if isinstance(data, dict):
            return {key: value.strip() if isinstance(value, str) else value for key, value in data.items()}
        return data


def _check_length(value: str, label: str, min_length: int, max_length: int, error_type: str) -> str:
    if not min_length <= len(value) <= max_length:
        raise PydanticCustomError(
            error_type,
            "{label} must be between {min} and {max} characters",
            {"label": label, "min": min_length, "max": max_length},
        )
    return escape(value, quote=True)


def _clean_tags(value: Any) -> Any:
    if value is None:
        return []
    if isinstance(value, list):
        value = [tag.strip() if isinstance(tag, str) else tag for tag in value]
        value = [tag for tag in value if tag != ""]
        if len(value) > MAX_TAGS:
            raise PydanticCustomError(
                "too_many_tags",
                "A note cannot have more than {max} tags",
                {"max": MAX_TAGS},
            )
    return value


# ══════════════════════════════════════════════════════════════════════════
# Request Models — What the client sends
# ══════════════════════════════════════════════════════════════════════════


class NoteCreate(TrimmedModel):
    """
    Body of POST /api/notes.

    Fields besides title, content and tags are ignored, so ids and
    timestamps can never be supplied by the client.
    """

    title: str = Field(description="Note title, 1-200 characters after trimming")
    content: str = Field(description="Note body, 1-10000 characters after trimming")
    tags: List[str] = Field(default_factory=list, description="Ordered tags, at most 10")

    @field_validator("title")
    @classmethod
    def validate_title(cls, v: str) -> str:
        if not v:
            raise PydanticCustomError("title_required", "Title is required")
        return _check_length(v, "Title", TITLE_MIN_LENGTH, TITLE_MAX_LENGTH, "title_length")

    @field_validator("content")
    @classmethod
    def validate_content(cls, v: str) -> str:
        if not v:
            raise PydanticCustomError("content_required", "Content is required")
        return _check_length(v, "Content", CONTENT_MIN_LENGTH, CONTENT_MAX_LENGTH, "content_length")

    @field_validator("tags", mode="before")
    @classmethod
    def validate_tags(cls, v: Any) -> Any:
        return _clean_tags(v)


class NoteUpdate(TrimmedModel):
    """
    Body of PUT /api/notes/{id}: a partial update.

    Only fields present in the body change. At least one of title, content,
    tags or isArchived must be given.
    """

    title: Optional[str] = None
    content: Optional[str] = None
    tags: Optional[List[str]] = None
    is_archived: Optional[bool] = None

    @field_validator("title")
    @classmethod
    def validate_title(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        if not v:
            raise PydanticCustomError("title_empty", "Title cannot be empty if provided")
        return _check_length(v, "Title", TITLE_MIN_LENGTH, TITLE_MAX_LENGTH, "title_length")

    @field_validator("content")
    @classmethod
    def validate_content(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        if not v:
            raise PydanticCustomError("content_empty", "Content cannot be empty if provided")
        return _check_length(v, "Content", CONTENT_MIN_LENGTH, CONTENT_MAX_LENGTH, "content_length")

    @field_validator("tags", mode="before")
    @classmethod
    def validate_tags(cls, v: Any) -> Any:
        if v is None:
            return None
        return _clean_tags(v)

    @model_validator(mode="after")
    def require_any_field(self) -> "NoteUpdate":
        if all(value is None for value in (self.title, self.content, self.tags, self.is_archived)):
            raise PydanticCustomError(
                "update_empty",
                "At least one field (title, content, tags, isArchived) must be provided",
            )
        return self

    def changes(self) -> dict:
        """Fields the client actually provided, keyed by model attribute."""
        return self.model_dump(exclude_none=True)


# ══════════════════════════════════════════════════════════════════════════
# Response Models — What the API returns
# ══════════════════════════════════════════════════════════════════════════


class NoteRead(CamelModel):
    """Read-only projection of a stored note."""

    id: uuid.UUID
    title: str
    content: str
    tags: List[str] = Field(default_factory=list)
    is_archived: bool = False
    created_at: datetime
    updated_at: datetime

    @field_validator("created_at", "updated_at")
    @classmethod
    def ensure_utc(cls, v: datetime) -> datetime:
        return as_utc(v)


class Pagination(CamelModel):
    current_page: int
    total_pages: int
    total_count: int
    has_next_page: bool
    has_prev_page: bool
    limit: int

    @classmethod
    def build(cls, page: int, limit: int, total_count: int) -> "Pagination":
        total_pages = -(-total_count // limit) if total_count else 0
        return cls(
            current_page=page,
            total_pages=total_pages,
            total_count=total_count,
            has_next_page=page < total_pages,
            has_prev_page=page > 1,
            limit=limit,
        )


class ListMeta(CamelModel):
    """Echo of how a list page was produced; `sortBy` is "relevance" for text searches."""

    sort_by: str
    sort_order: str
    archived: bool
    search: Optional[str] = None


class SearchMeta(CamelModel):
    query: str
    results_count: int


class DeletedNote(CamelModel):
    id: uuid.UUID
    title: str


class NoteEnvelope(CamelModel):
    success: bool = True
    data: NoteRead
    message: Optional[str] = None


class NoteListEnvelope(CamelModel):
    success: bool = True
    data: List[NoteRead]
    pagination: Pagination
    meta: Optional[ListMeta] = None


class SearchEnvelope(CamelModel):
    success: bool = True
    data: List[NoteRead]
    meta: SearchMeta


class DeletedEnvelope(CamelModel):
    success: bool = True
    data: DeletedNote
    message: Optional[str] = None


class ErrorResponse(CamelModel):
    """
    Failure envelope produced by the error classifier.

    Only `success` and `message` are always present; the rest depend on the
    error kind.
    """

    success: bool = False
    message: str
    errors: Optional[List[dict]] = None
    field: Optional[str] = None
    value: Optional[Any] = None
    error: Optional[str] = None
    stack: Optional[str] = None


class HealthResponse(CamelModel):
    """Liveness payload for GET /health."""

    success: bool = True
    status: str = Field(description="Always 'healthy' while the process serves requests")
    timestamp: datetime
    environment: str
    uptime: float = Field(description="Seconds since the process started")
    database: str = Field(description="Connection state of the note store")
