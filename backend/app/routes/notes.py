"""
Notes Backend — Notes Route Handlers
======================================

What:  The /api/notes endpoint family: list, search, get, create, update,
       archive toggle and delete.
How:   Request bodies and query parameters are validated by FastAPI against
       the pydantic schemas before the handler runs; the path id is parsed
       by `parse_note_id`. Handlers call NoteService and wrap the result in
       the success envelope. They never build failure responses: every
       error propagates to the handlers in main.py.
Who:   Called by the client package (app.client.api.NotesAPI).

Route order:
    /notes/search is declared before /notes/{note_id} so "search" is never
    parsed as an id.
"""

import logging
import uuid
from typing import Literal, Optional

from fastapi import APIRouter, Depends, Path, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db_session
from app.exceptions import MalformedIdentifierError, ValidationError
from app.schemas.note import (
    DeletedEnvelope,
    DeletedNote,
    ErrorResponse,
    ListMeta,
    NoteCreate,
    NoteEnvelope,
    NoteListEnvelope,
    NoteRead,
    NoteUpdate,
    Pagination,
    SearchEnvelope,
    SearchMeta,
)
from app.services.note_service import DEFAULT_LIST_LIMIT, DEFAULT_SEARCH_LIMIT, note_service

logger = logging.getLogger(__name__)

# ── Router Configuration ──────────────────────────────────────────────────
router = APIRouter(prefix="/api", tags=["Notes"])

# Row offsets are bound as signed 64-bit integers by every driver
MAX_OFFSET = 2**63 - 1

_ERRORS = {
    400: {"description": "Validation failure or malformed id", "model": ErrorResponse},
    404: {"description": "Note not found", "model": ErrorResponse},
    503: {"description": "Database unavailable", "model": ErrorResponse},
}


def parse_note_id(note_id: str = Path(description="Note UUID")) -> uuid.UUID:
    """
    Path dependency: parse the note id or reject it as malformed.

    A malformed id is a 400 MalformedIdentifier, distinct from the 404 a
    well-formed but unknown id gets from the service.
    """
    try:
        return uuid.UUID(note_id)
    except ValueError:
        raise MalformedIdentifierError(note_id)


@router.get(
    "/notes",
    response_model=NoteListEnvelope,
    response_model_exclude_none=True,
    responses=_ERRORS,
    summary="List notes with pagination",
)
async def list_notes(
    page: int = Query(default=1, ge=1, description="1-indexed page number"),
    limit: int = Query(default=DEFAULT_LIST_LIMIT, ge=1, le=100, description="Items per page (max 100)"),
    sort_by: Literal["createdAt", "updatedAt", "title"] = Query(default="createdAt", alias="sortBy"),
    sort_order: Literal["asc", "desc"] = Query(default="desc", alias="sortOrder"),
    archived: bool = Query(default=False, description="List archived instead of active notes"),
    search: Optional[str] = Query(
        default=None,
        description="Text query; restricts to active notes and orders by relevance",
    ),
    db: AsyncSession = Depends(get_db_session),
) -> NoteListEnvelope:
    """
    One page of notes.

    With `search` the page is relevance-ordered and `sortBy` is ignored;
    `meta.sortBy` reports "relevance" in that case.
    """
    if (page - 1) * limit > MAX_OFFSET:
        raise ValidationError.for_field("page", "Page is out of range", page)
    search = search.strip() if search else None
    notes, total = await note_service.list_notes(
        db=db,
        archived=archived,
        search=search,
        sort_by=sort_by,
        sort_order=sort_order,
        page=page,
        limit=limit,
    )
    return NoteListEnvelope(
        data=[NoteRead.model_validate(note) for note in notes],
        pagination=Pagination.build(page=page, limit=limit, total_count=total),
        meta=ListMeta(
            sort_by="relevance" if search else sort_by,
            sort_order="desc" if search else sort_order,
            archived=False if search else archived,
            search=search,
        ),
    )


@router.get(
    "/notes/search",
    response_model=SearchEnvelope,
    responses=_ERRORS,
    summary="Full-text search over active notes",
)
async def search_notes(
    q: str = Query(default="", description="Search text"),
    limit: int = Query(default=DEFAULT_SEARCH_LIMIT, ge=1, le=100),
    db: AsyncSession = Depends(get_db_session),
) -> SearchEnvelope:
    query = q.strip()
    if not query:
        raise ValidationError.for_field("q", "Search query is required", q)

    notes = await note_service.search_notes(db=db, query=query, limit=limit)
    return SearchEnvelope(
        data=[NoteRead.model_validate(note) for note in notes],
        meta=SearchMeta(query=query, results_count=len(notes)),
    )


@router.get(
    "/notes/{note_id}",
    response_model=NoteEnvelope,
    response_model_exclude_none=True,
    responses=_ERRORS,
    summary="Get a single note by ID",
)
async def get_note(
    note_id: uuid.UUID = Depends(parse_note_id),
    db: AsyncSession = Depends(get_db_session),
) -> NoteEnvelope:
    note = await note_service.get_note(db=db, note_id=note_id)
    return NoteEnvelope(data=NoteRead.model_validate(note))


@router.post(
    "/notes",
    response_model=NoteEnvelope,
    status_code=status.HTTP_201_CREATED,
    responses=_ERRORS,
    summary="Create a note",
)
async def create_note(
    body: NoteCreate,
    db: AsyncSession = Depends(get_db_session),
) -> NoteEnvelope:
    note = await note_service.create_note(db=db, data=body)
    return NoteEnvelope(data=NoteRead.model_validate(note), message="Note created successfully")


@router.put(
    "/notes/{note_id}",
    response_model=NoteEnvelope,
    responses=_ERRORS,
    summary="Partially update a note",
)
async def update_note(
    body: NoteUpdate,
    note_id: uuid.UUID = Depends(parse_note_id),
    db: AsyncSession = Depends(get_db_session),
) -> NoteEnvelope:
    note = await note_service.update_note(db=db, note_id=note_id, patch=body)
    return NoteEnvelope(data=NoteRead.model_validate(note), message="Note updated successfully")


@router.patch(
    "/notes/{note_id}/archive",
    response_model=NoteEnvelope,
    responses=_ERRORS,
    summary="Toggle a note's archived flag",
)
async def toggle_archive(
    note_id: uuid.UUID = Depends(parse_note_id),
    db: AsyncSession = Depends(get_db_session),
) -> NoteEnvelope:
    note = await note_service.toggle_archive(db=db, note_id=note_id)
    state = "archived" if note.is_archived else "unarchived"
    return NoteEnvelope(data=NoteRead.model_validate(note), message=f"Note {state} successfully")


@router.delete(
    "/notes/{note_id}",
    response_model=DeletedEnvelope,
    responses=_ERRORS,
    summary="Delete a note",
)
async def delete_note(
    note_id: uuid.UUID = Depends(parse_note_id),
    db: AsyncSession = Depends(get_db_session),
) -> DeletedEnvelope:
    deleted = await note_service.delete_note(db=db, note_id=note_id)
    return DeletedEnvelope(data=DeletedNote(**deleted), message="Note deleted successfully")
