"""
Notes Backend — Note Service Unit Tests
=========================================

What:  Tests for NoteService repository operations.
How:   Not-found and validation paths use the mock DB session; query
       behavior (filters, ordering, pagination, search) runs against the
       in-memory SQLite store.
"""

from unittest.mock import AsyncMock
from uuid import uuid4

import pytest

from app.exceptions import NotFoundError, StoreValidationError, ValidationError
from app.models.note import Note
from app.schemas.note import NoteCreate, NoteUpdate
from app.services.note_service import NoteService


class TestNoteServiceNotFound:
    """Missing rows become NotFoundError for every id-based operation."""

    def setup_method(self):
        self.service = NoteService()

    @pytest.mark.asyncio
    async def test_get_note_not_found(self, mock_db_session):
        mock_db_session.get = AsyncMock(return_value=None)
        note_id = uuid4()

        with pytest.raises(NotFoundError) as exc_info:
            await self.service.get_note(db=mock_db_session, note_id=note_id)

        assert exc_info.value.message == "Note not found"
        assert exc_info.value.context["resource_id"] == str(note_id)

    @pytest.mark.asyncio
    async def test_update_missing_note_does_not_flush(self, mock_db_session):
        mock_db_session.get = AsyncMock(return_value=None)

        with pytest.raises(NotFoundError):
            await self.service.update_note(mock_db_session, uuid4(), NoteUpdate(title="x"))

        mock_db_session.flush.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_delete_missing_note(self, mock_db_session):
        mock_db_session.get = AsyncMock(return_value=None)

        with pytest.raises(NotFoundError):
            await self.service.delete_note(mock_db_session, uuid4())

        mock_db_session.delete.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_toggle_missing_note(self, mock_db_session):
        mock_db_session.get = AsyncMock(return_value=None)

        with pytest.raises(NotFoundError):
            await self.service.toggle_archive(mock_db_session, uuid4())


class TestNoteServiceSearchValidation:

    def setup_method(self):
        self.service = NoteService()

    @pytest.mark.asyncio
    @pytest.mark.parametrize("query", ["", "   ", None])
    async def test_empty_query_never_reaches_the_store(self, mock_db_session, query):
        with pytest.raises(ValidationError) as exc_info:
            await self.service.search_notes(mock_db_session, query)

        assert exc_info.value.errors[0]["field"] == "q"
        mock_db_session.scalars.assert_not_awaited()


class TestNoteServiceWrites:

    def setup_method(self):
        self.service = NoteService()

    @pytest.mark.asyncio
    async def test_create_assigns_id_and_equal_timestamps(self, db_session):
        note = await self.service.create_note(
            db_session, NoteCreate(title="Groceries", content="Milk", tags=["home"])
        )

        assert note.id is not None
        assert note.created_at == note.updated_at
        assert note.is_archived is False
        assert note.tags == ["home"]

    @pytest.mark.asyncio
    async def test_update_only_touches_given_fields(self, db_session):
        note = await self.service.create_note(db_session, NoteCreate(title="A", content="B"))
        before = note.updated_at

        updated = await self.service.update_note(
            db_session, note.id, NoteUpdate(tags=["x", "x"])
        )

        assert updated.title == "A"
        assert updated.content == "B"
        assert updated.tags == ["x", "x"]
        assert updated.updated_at > before

    @pytest.mark.asyncio
    async def test_update_can_set_archived_flag(self, db_session):
        note = await self.service.create_note(db_session, NoteCreate(title="A", content="B"))

        updated = await self.service.update_note(
            db_session, note.id, NoteUpdate(is_archived=True)
        )

        assert updated.is_archived is True

    @pytest.mark.asyncio
    async def test_rows_written_directly_are_served(self, db_session, sample_note_data):
        db_session.add(Note(**sample_note_data))
        await db_session.flush()

        note = await self.service.get_note(db_session, sample_note_data["id"])
        notes, total = await self.service.list_notes(db_session)

        assert note.tags == ["home", "shopping"]
        assert [n.id for n in notes] == [sample_note_data["id"]]
        assert total == 1

    @pytest.mark.asyncio
    async def test_loaded_rows_keep_store_rules(self, db_session, sample_note_data):
        db_session.add(Note(**sample_note_data))
        await db_session.flush()
        note = await self.service.get_note(db_session, sample_note_data["id"])

        with pytest.raises(StoreValidationError):
            note.title = "   "

        assert note.title == "Groceries"

    @pytest.mark.asyncio
    async def test_delete_returns_id_and_title(self, db_session):
        note = await self.service.create_note(db_session, NoteCreate(title="Bye", content="B"))

        summary = await self.service.delete_note(db_session, note.id)

        assert summary == {"id": note.id, "title": "Bye"}
        assert await db_session.get(Note, note.id) is None


class TestNoteServiceQueries:

    def setup_method(self):
        self.service = NoteService()

    async def _create(self, db, title, content="body", archived=False):
        note = await self.service.create_note(db, NoteCreate(title=title, content=content))
        if archived:
            await self.service.toggle_archive(db, note.id)
        return note

    @pytest.mark.asyncio
    async def test_list_counts_independently_of_page(self, db_session):
        for i in range(12):
            await self._create(db_session, f"Note {i}")

        notes, total = await self.service.list_notes(db_session, page=2, limit=5)

        assert total == 12
        assert len(notes) == 5

    @pytest.mark.asyncio
    async def test_list_filters_on_archived(self, db_session):
        await self._create(db_session, "Active")
        await self._create(db_session, "Archived", archived=True)

        active, active_total = await self.service.list_notes(db_session, archived=False)
        archived, archived_total = await self.service.list_notes(db_session, archived=True)

        assert [n.title for n in active] == ["Active"]
        assert [n.title for n in archived] == ["Archived"]
        assert (active_total, archived_total) == (1, 1)

    @pytest.mark.asyncio
    async def test_list_default_order_is_newest_first(self, db_session):
        for title in ("first", "second", "third"):
            await self._create(db_session, title)

        notes, _ = await self.service.list_notes(db_session)

        assert [n.title for n in notes] == ["third", "second", "first"]

    @pytest.mark.asyncio
    async def test_list_sorts_by_title_descending(self, db_session):
        for title in ("b", "c", "a"):
            await self._create(db_session, title)

        notes, _ = await self.service.list_notes(db_session, sort_by="title", sort_order="desc")

        assert [n.title for n in notes] == ["c", "b", "a"]

    @pytest.mark.asyncio
    async def test_list_with_search_ignores_archived_flag_and_sort(self, db_session):
        await self._create(db_session, "Milk", content="todo")
        await self._create(db_session, "Bread", content="no milk here")
        await self._create(db_session, "Milk archived", archived=True)

        notes, total = await self.service.list_notes(
            db_session, archived=True, search="milk", sort_by="title", sort_order="asc"
        )

        assert [n.title for n in notes] == ["Milk", "Bread"]
        assert total == 2

    @pytest.mark.asyncio
    async def test_search_matches_any_term_case_insensitively(self, db_session):
        await self._create(db_session, "Weekly plan", content="Gym on Monday")
        await self._create(db_session, "Groceries", content="eggs")
        await self._create(db_session, "Unrelated", content="nothing")

        notes = await self.service.search_notes(db_session, "GYM eggs")

        assert {n.title for n in notes} == {"Weekly plan", "Groceries"}

    @pytest.mark.asyncio
    async def test_search_respects_limit(self, db_session):
        for i in range(5):
            await self._create(db_session, f"milk {i}")

        notes = await self.service.search_notes(db_session, "milk", limit=3)

        assert len(notes) == 3

    @pytest.mark.asyncio
    async def test_search_treats_like_wildcards_literally(self, db_session):
        await self._create(db_session, "100% done")
        await self._create(db_session, "1000 things")

        notes = await self.service.search_notes(db_session, "100%")

        assert [n.title for n in notes] == ["100% done"]
