"""
Notes Backend — Note SQLAlchemy Model
=======================================

What:  ORM model representing the `notes` table.
Why:   The table is the last line of defence for the field rules, so
       they are repeated here for writes that bypass the API schemas.
How:   Inherits from the shared DeclarativeBase; Alembic reads it for
       migrations and `Database.create_all()` for tests.
Who:   Used by NoteService for every repository operation.

Table design:
    - UUID primary key, generated by the service, never reused
    - title / content: TEXT; limits are checked on the unescaped text
    - tags: JSON array, order preserved, duplicates allowed
    - is_archived: flag used by the default list view
    - created_at / updated_at: UTC, set by the server only

Store-level rules:
    The @validates hooks below repeat the request-level checks (non-empty
    after trim, length limits, tag count) so that any code path writing
    notes without going through the API schemas is still held to them.

Indexes:
    idx_notes_created_at_archived  (created_at DESC, is_archived)  default list view
    idx_notes_text_search          GIN over to_tsvector(title || ' ' || content),
                                   PostgreSQL only
"""

import uuid
from datetime import datetime, timedelta, timezone
from html import unescape
from typing import List

from sqlalchemy import JSON, Boolean, DateTime, Index, Text, Uuid, func, literal_column
from sqlalchemy.orm import Mapped, mapped_column, validates

from app.database import Base
from app.exceptions import StoreValidationError

TITLE_MIN_LENGTH = 1
TITLE_MAX_LENGTH = 200
CONTENT_MIN_LENGTH = 1
CONTENT_MAX_LENGTH = 10000
MAX_TAGS = 10


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """SQLite hands back naive datetimes; everything stored is UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _checked_text(field: str, label: str, value, max_length: int) -> str:
    if not isinstance(value, str) or not value.strip():
        raise StoreValidationError.for_field(field, f"{label} cannot be empty or just whitespace", value)
    value = value.strip()
    if len(unescape(value)) > max_length:
        raise StoreValidationError.for_field(field, f"{label} cannot exceed {max_length} characters", value)
    return value


class Note(Base):
    """
    A user note.

    Lifecycle:
        1. Created by NoteService.create_note (id, created_at, updated_at set)
        2. Mutated by update_note / toggle_archive (updated_at bumped)
        3. Hard-deleted by delete_note; no tombstone is kept
    """

    __tablename__ = "notes"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
    )

    title: Mapped[str] = mapped_column(Text, nullable=False)

    content: Mapped[str] = mapped_column(Text, nullable=False)

    tags: Mapped[List[str]] = mapped_column(JSON, nullable=False, default=list)

    is_archived: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        index=True,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )

    @validates("title")
    def _validate_title(self, key: str, value) -> str:
        return _checked_text(key, "Title", value, TITLE_MAX_LENGTH)

    @validates("content")
    def _validate_content(self, key: str, value) -> str:
        return _checked_text(key, "Content", value, CONTENT_MAX_LENGTH)

    @validates("tags")
    def _validate_tags(self, key: str, value) -> List[str]:
        if value is None:
            return []
        if not isinstance(value, list) or not all(isinstance(tag, str) and tag.strip() for tag in value):
            raise StoreValidationError.for_field(key, "Tags must be non-empty strings", value)
        if len(value) > MAX_TAGS:
            raise StoreValidationError.for_field(key, f"A note cannot have more than {MAX_TAGS} tags", value)
        return list(value)

    def touch(self) -> None:
        """Bump updated_at, always strictly past its previous value."""
        now = utcnow()
        if self.updated_at is not None:
            previous = as_utc(self.updated_at)
            if now <= previous:
                now = previous + timedelta(microseconds=1)
        self.updated_at = now

    def __repr__(self) -> str:
        return f"<Note(id={self.id}, archived={self.is_archived}, created_at='{self.created_at}')>"


# Text document used by both the GIN index and search queries; the two
# expressions must match for PostgreSQL to use the index.
SEARCH_DOCUMENT = func.to_tsvector(
    literal_column("'english'"),
    Note.title + literal_column("' '") + Note.content,
)

Index("idx_notes_created_at_archived", Note.created_at.desc(), Note.is_archived)

Index(
    "idx_notes_text_search",
    SEARCH_DOCUMENT,
    postgresql_using="gin",
).ddl_if(dialect="postgresql")
