"""
Notes Client — API Adapter Tests
==================================

What:  Retry policy, error normalization and envelope handling of NotesAPI.
How:   httpx.MockTransport scripts the server's answers; the last class runs
       the adapter against the real app through ASGITransport.
"""

import json
from uuid import uuid4

import httpx
import pytest
from httpx import ASGITransport

from app.client import ApiError, NoteFilters, NotesAPI
from app.client.errors import INVALID_RESPONSE_MESSAGE, NETWORK_ERROR_MESSAGE, NOT_FOUND_MESSAGE

BASE_URL = "http://notes.test/api"


def _note_json(**overrides):
    note = {
        "id": str(uuid4()),
        "title": "Groceries",
        "content": "Milk",
        "tags": ["home"],
        "isArchived": False,
        "createdAt": "2026-01-01T10:00:00Z",
        "updatedAt": "2026-01-01T10:00:00Z",
    }
    note.update(overrides)
    return note


class ScriptedServer:
    """Answers requests from a queue and remembers what it was asked."""

    def __init__(self, *answers):
        self.answers = list(answers)
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        answer = self.answers.pop(0) if len(self.answers) > 1 else self.answers[0]
        if isinstance(answer, Exception):
            raise answer
        return answer


def _api(server, attempts=3) -> NotesAPI:
    return NotesAPI(BASE_URL, retry_attempts=attempts, retry_delay=0, transport=httpx.MockTransport(server))


class TestRetryPolicy:

    @pytest.mark.asyncio
    async def test_get_retries_server_errors_then_succeeds(self):
        note = _note_json()
        server = ScriptedServer(
            httpx.Response(503, json={"success": False, "message": "down"}),
            httpx.Response(500),
            httpx.Response(200, json={"success": True, "data": note}),
        )

        async with _api(server) as api:
            result = await api.get_note(note["id"])

        assert str(result.id) == note["id"]
        assert len(server.requests) == 3

    @pytest.mark.asyncio
    async def test_get_gives_up_after_configured_attempts(self):
        server = ScriptedServer(httpx.Response(503, json={"success": False, "message": "Database service is not available"}))

        async with _api(server, attempts=2) as api:
            with pytest.raises(ApiError) as exc_info:
                await api.get_notes()

        assert len(server.requests) == 2
        assert exc_info.value.code == "SERVICE_UNAVAILABLE"
        assert exc_info.value.status == 503
        assert exc_info.value.message == "Database service is not available"

    @pytest.mark.asyncio
    async def test_transport_failures_are_retried_and_reported_as_network_errors(self):
        server = ScriptedServer(httpx.ConnectError("connection refused"))

        async with _api(server) as api:
            with pytest.raises(ApiError) as exc_info:
                await api.get_notes()

        assert len(server.requests) == 3
        assert exc_info.value.code == "NETWORK_ERROR"
        assert exc_info.value.status == 0
        assert exc_info.value.message == NETWORK_ERROR_MESSAGE

    @pytest.mark.asyncio
    async def test_client_errors_are_not_retried(self):
        server = ScriptedServer(httpx.Response(404, json={"success": False, "message": "Note not found"}))

        async with _api(server) as api:
            with pytest.raises(ApiError) as exc_info:
                await api.get_note(str(uuid4()))

        assert len(server.requests) == 1
        assert exc_info.value.code == "NOT_FOUND"
        assert exc_info.value.message == "Note not found"

    @pytest.mark.asyncio
    async def test_mutations_are_sent_once(self):
        server = ScriptedServer(httpx.Response(500))

        async with _api(server) as api:
            with pytest.raises(ApiError) as exc_info:
                await api.create_note({"title": "t", "content": "c"})

        assert len(server.requests) == 1
        assert exc_info.value.code == "SERVER_ERROR"


class TestErrorNormalization:

    @pytest.mark.asyncio
    async def test_field_errors_become_details(self):
        errors = [{"field": "title", "message": "Title is required", "value": ""}]
        server = ScriptedServer(httpx.Response(400, json={"success": False, "errors": errors}))

        async with _api(server) as api:
            with pytest.raises(ApiError) as exc_info:
                await api.create_note({"title": "", "content": "c"})

        assert exc_info.value.code == "BAD_REQUEST"
        assert exc_info.value.message == "Title is required"
        assert exc_info.value.details == errors

    @pytest.mark.asyncio
    async def test_status_without_body_gets_default_message(self):
        server = ScriptedServer(httpx.Response(404, text="nope"))

        async with _api(server) as api:
            with pytest.raises(ApiError) as exc_info:
                await api.delete_note(str(uuid4()))

        assert exc_info.value.message == NOT_FOUND_MESSAGE

    @pytest.mark.asyncio
    async def test_unlisted_status_is_http_error(self):
        server = ScriptedServer(httpx.Response(418, json={}))

        async with _api(server) as api:
            with pytest.raises(ApiError) as exc_info:
                await api.toggle_archive(str(uuid4()))

        assert exc_info.value.code == "HTTP_ERROR"
        assert exc_info.value.status == 418

    @pytest.mark.asyncio
    async def test_non_json_success_is_unknown_error(self):
        server = ScriptedServer(httpx.Response(200, text="<html>"))

        async with _api(server) as api:
            with pytest.raises(ApiError) as exc_info:
                await api.get_notes()

        assert exc_info.value.code == "UNKNOWN_ERROR"

    @pytest.mark.asyncio
    async def test_malformed_list_item_is_an_api_error(self):
        server = ScriptedServer(httpx.Response(200, json={"success": True, "data": [{"id": "x"}]}))

        async with _api(server) as api:
            with pytest.raises(ApiError) as exc_info:
                await api.get_notes()

        assert exc_info.value.code == "UNKNOWN_ERROR"
        assert exc_info.value.status == 0
        assert exc_info.value.message == INVALID_RESPONSE_MESSAGE

    @pytest.mark.asyncio
    async def test_malformed_search_item_is_an_api_error(self):
        server = ScriptedServer(
            httpx.Response(200, json={"success": True, "data": [_note_json(), {"title": 3}]})
        )

        async with _api(server) as api:
            with pytest.raises(ApiError) as exc_info:
                await api.search_notes("milk")

        assert exc_info.value.code == "UNKNOWN_ERROR"

    @pytest.mark.asyncio
    async def test_malformed_pagination_is_an_api_error(self):
        server = ScriptedServer(
            httpx.Response(200, json={"success": True, "data": [], "pagination": {"limit": "many"}})
        )

        async with _api(server) as api:
            with pytest.raises(ApiError):
                await api.get_notes()

    def test_to_dict(self):
        error = ApiError("boom", "SERVER_ERROR", status=500)

        assert error.to_dict()["code"] == "SERVER_ERROR"
        assert error.to_dict()["status"] == 500
        assert error.to_dict()["details"] == []


class TestEnvelopes:

    @pytest.mark.asyncio
    async def test_list_without_data_is_empty_with_fallback_pagination(self):
        server = ScriptedServer(httpx.Response(200, json={"success": True}))

        async with _api(server) as api:
            page = await api.get_notes()

        assert page.notes == []
        assert page.pagination.total_count == 0
        assert page.pagination.limit == 20

    @pytest.mark.asyncio
    async def test_list_sends_only_set_filters(self):
        server = ScriptedServer(httpx.Response(200, json={"success": True, "data": []}))

        async with _api(server) as api:
            await api.get_notes(NoteFilters(page=2, sort_by="title", search="", archived=False))

        params = dict(server.requests[0].url.params)
        assert params == {"page": "2", "sortBy": "title", "archived": "false"}

    @pytest.mark.asyncio
    async def test_create_without_data_is_an_error(self):
        server = ScriptedServer(httpx.Response(201, json={"success": True}))

        async with _api(server) as api:
            with pytest.raises(ApiError) as exc_info:
                await api.create_note({"title": "t", "content": "c"})

        assert exc_info.value.code == "UNKNOWN_ERROR"
        assert exc_info.value.status == 0

    @pytest.mark.asyncio
    async def test_update_body_uses_camel_case(self):
        server = ScriptedServer(httpx.Response(200, json={"success": True, "data": _note_json(isArchived=True)}))

        async with _api(server) as api:
            note = await api.update_note(str(uuid4()), {"is_archived": True})

        assert server.requests[0].method == "PUT"
        assert json.loads(server.requests[0].content) == {"isArchived": True}
        assert note.is_archived is True

    @pytest.mark.asyncio
    async def test_search_without_data_is_empty(self):
        server = ScriptedServer(httpx.Response(200, json={"success": True}))

        async with _api(server) as api:
            assert await api.search_notes("milk") == []


class TestAgainstTheApp:

    @pytest.mark.asyncio
    async def test_full_round_trip(self, database):
        from app.main import create_app

        transport = ASGITransport(app=create_app(database=database))
        async with NotesAPI("http://test/api", retry_delay=0, transport=transport) as api:
            created = await api.create_note({"title": "Groceries", "content": "Milk", "tags": ["home"]})
            archived = await api.toggle_archive(str(created.id))
            page = await api.get_notes(NoteFilters(archived=True))
            found = await api.search_notes("groceries")
            deleted = await api.delete_note(str(created.id))
            health = await api.health()

            with pytest.raises(ApiError) as exc_info:
                await api.get_note(str(created.id))

        assert archived.is_archived is True
        assert [n.id for n in page.notes] == [created.id]
        assert found == []
        assert deleted.title == "Groceries"
        assert health["status"] == "healthy"
        assert exc_info.value.code == "NOT_FOUND"
