"""
Notes Backend — Note Service (Repository Operations)
======================================================

What:  Every read and write against the notes table: filtered listing,
       relevance search, get, create, partial update, archive toggle, delete.
Why:   Routes stay HTTP-only; every query shape (filter, sort, rank) lives
       in one class that tests can drive with a bare session.
How:   Stateless methods taking the request's AsyncSession. Store errors
       are not caught here: they propagate to the error classifier, which
       is the only place that maps failures to responses.
Who:   Called by route handlers in routes/notes.py.

Listing vs. searching:
    list_notes() without a search term filters on `is_archived` and sorts
    by a field. With a search term it delegates to the relevance ranking
    used by search_notes(), restricted to non-archived notes; the sort
    field is ignored and the caller reports `sortBy: "relevance"`.

Full-text matching:
    PostgreSQL   to_tsvector('english', title || ' ' || content)
                 @@ plainto_tsquery(...), ranked by ts_rank (GIN index)
    other        per-term case-insensitive LIKE on title and content,
                 ranked by title hits x2 + content hits x1

Design Decision:
    The LIKE ranking exists so the in-memory SQLite test store answers
    search queries with the same contract (matches, order, count) as
    PostgreSQL. It scans every row, so production deployments rely on the
    GIN index path.
"""

import logging
import uuid
from html import escape
from typing import List, Optional, Tuple

from sqlalchemy import ColumnElement, and_, case, func, literal, literal_column, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.exceptions import NotFoundError, ValidationError
from app.models.note import SEARCH_DOCUMENT, Note, utcnow
from app.schemas.note import NoteCreate, NoteUpdate

logger = logging.getLogger(__name__)

DEFAULT_LIST_LIMIT = 50
DEFAULT_SEARCH_LIMIT = 10

SORT_COLUMNS = {
    "createdAt": Note.created_at,
    "updatedAt": Note.updated_at,
    "title": Note.title,
}


def _escape_like(term: str) -> str:
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _dialect_name(db: AsyncSession) -> str:
    return db.bind.dialect.name


def _text_match(dialect: str, query: str) -> Tuple[ColumnElement, ColumnElement]:
    """Returns (match condition, relevance expression) for a search query."""
    if dialect == "postgresql":
        ts_query = func.plainto_tsquery(literal_column("'english'"), query)
        return SEARCH_DOCUMENT.op("@@", is_comparison=True)(ts_query), func.ts_rank(SEARCH_DOCUMENT, ts_query)

    # Stored title/content are HTML-escaped, so terms are escaped the same way
    conditions = []
    score: ColumnElement = literal(0)
    for term in query.split():
        pattern = f"%{_escape_like(escape(term, quote=True))}%"
        title_hit = Note.title.ilike(pattern, escape="\\")
        content_hit = Note.content.ilike(pattern, escape="\\")
        conditions.extend([title_hit, content_hit])
        score = score + case((title_hit, 2), else_=0) + case((content_hit, 1), else_=0)
    return or_(*conditions), score


class NoteService:
    """
    Repository operations over the note store.

    Responsibilities:
        - list_notes(): filtered or searched page plus total count
        - search_notes(): top-N relevance results
        - get/create/update/delete/toggle_archive: single-note lifecycle

    Missing rows become NotFoundError; nothing else is translated.
    """

    # ── Reads ─────────────────────────────────────────────────────────────
    async def list_notes(
        self,
        db: AsyncSession,
        archived: bool = False,
        search: Optional[str] = None,
        sort_by: str = "createdAt",
        sort_order: str = "desc",
        page: int = 1,
        limit: int = DEFAULT_LIST_LIMIT,
    ) -> Tuple[List[Note], int]:
        """
        One page of notes plus the count of every note matching the filter.

        Args:
            archived:   Archive flag to match (ignored when searching).
            search:     Optional text query; switches to relevance ranking.
            sort_by:    createdAt | updatedAt | title (ignored when searching).
            sort_order: asc | desc.
            page:       1-indexed page number.
            limit:      Page size.

        Returns:
            (notes on the page, total matching count)
        """
        offset = (page - 1) * limit
        if search and search.strip():
            return await self._search_page(db, search.strip(), offset, limit)
        return await self._filtered_page(db, archived, sort_by, sort_order, offset, limit)

    async def _filtered_page(
        self,
        db: AsyncSession,
        archived: bool,
        sort_by: str,
        sort_order: str,
        offset: int,
        limit: int,
    ) -> Tuple[List[Note], int]:
        condition = Note.is_archived == archived
        column = SORT_COLUMNS.get(sort_by, Note.created_at)
        if sort_order == "asc":
            ordering = (column.asc(), Note.id.asc())
        else:
            ordering = (column.desc(), Note.id.desc())

        total = await db.scalar(select(func.count()).select_from(Note).where(condition))
        result = await db.scalars(
            select(Note).where(condition).order_by(*ordering).offset(offset).limit(limit)
        )
        return list(result.all()), total or 0

    async def _search_page(
        self,
        db: AsyncSession,
        query: str,
        offset: int,
        limit: int,
    ) -> Tuple[List[Note], int]:
        match, relevance = _text_match(_dialect_name(db), query)
        condition = and_(match, Note.is_archived.is_(False))

        total = await db.scalar(select(func.count()).select_from(Note).where(condition))
        result = await db.scalars(
            select(Note)
            .where(condition)
            .order_by(relevance.desc(), Note.created_at.desc(), Note.id.desc())
            .offset(offset)
            .limit(limit)
        )
        return list(result.all()), total or 0

    async def search_notes(
        self,
        db: AsyncSession,
        query: str,
        limit: int = DEFAULT_SEARCH_LIMIT,
    ) -> List[Note]:
        """
        Top `limit` non-archived notes matching `query`, best match first.

        Raises:
            ValidationError: the query is empty after trimming.
        """
        query = (query or "").strip()
        if not query:
            raise ValidationError.for_field("q", "Search query is required", query)

        notes, _ = await self._search_page(db, query, 0, limit)
        logger.debug("Search '%s' matched %d notes", query, len(notes))
        return notes

    async def get_note(self, db: AsyncSession, note_id: uuid.UUID) -> Note:
        """
        Fetch one note by primary key.

        Raises:
            NotFoundError: no note has this id (→ 404)
        """
        note = await db.get(Note, note_id)
        if note is None:
            raise NotFoundError(resource_id=str(note_id))
        return note

    # ── Writes ────────────────────────────────────────────────────────────
    async def create_note(self, db: AsyncSession, data: NoteCreate) -> Note:
        """Persist a new note; id and both timestamps are assigned here."""
        now = utcnow()
        note = Note(
            id=uuid.uuid4(),
            title=data.title,
            content=data.content,
            tags=list(data.tags),
            is_archived=False,
            created_at=now,
            updated_at=now,
        )
        db.add(note)
        await db.flush()
        logger.info("Note created: %s", note.id)
        return note

    async def update_note(self, db: AsyncSession, note_id: uuid.UUID, patch: NoteUpdate) -> Note:
        """
        Apply a partial update: only fields present in `patch` change.

        Raises:
            NotFoundError: no note has this id
        """
        note = await self.get_note(db, note_id)
        for key, value in patch.changes().items():
            setattr(note, key, list(value) if key == "tags" else value)
        note.touch()
        await db.flush()
        logger.info("Note updated: %s", note.id)
        return note

    async def toggle_archive(self, db: AsyncSession, note_id: uuid.UUID) -> Note:
        """Flip `is_archived` and return the note in its new state."""
        note = await self.get_note(db, note_id)
        note.is_archived = not note.is_archived
        note.touch()
        await db.flush()
        logger.info("Note %s: archived=%s", note.id, note.is_archived)
        return note

    async def delete_note(self, db: AsyncSession, note_id: uuid.UUID) -> dict:
        """
        Hard-delete a note.

        Returns:
            {"id": ..., "title": ...} of the removed note
        """
        note = await self.get_note(db, note_id)
        summary = {"id": note.id, "title": note.title}
        await db.delete(note)
        await db.flush()
        logger.info("Note deleted: %s", note_id)
        return summary


# ── Singleton Instance ────────────────────────────────────────────────────
note_service = NoteService()
