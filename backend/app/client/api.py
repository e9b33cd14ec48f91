"""
Notes Client — HTTP API Adapter
=================================

What:  Async wrapper around the notes REST API.
Why:   Callers catch exactly one error type (ApiError), whether the failure
       happened on the wire or while parsing the response.
How:   httpx.AsyncClient for transport, tenacity for retries, the backend's
       own pydantic read models for parsing responses.
Who:   NotesStore, scripts, integration tests.

Retry policy:
    Only reads (GET) are retried: up to `retry_attempts` tries, waiting
    retry_delay * 2^n between them. Transport failures and 5xx responses
    are retried; 4xx responses never are. Mutations are sent exactly once.

Envelope normalization:
    list / search   missing `data` → empty result (list gets fallback pagination)
    get / create /  missing `data` → ApiError, the caller needs the entity
    update / archive
    any part of the body failing validation → ApiError UNKNOWN_ERROR
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Type, TypeVar

import httpx
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError
from pydantic.alias_generators import to_camel
from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from app.client.errors import INVALID_RESPONSE_MESSAGE, NOT_FOUND_MESSAGE, ApiError
from app.schemas.note import DeletedNote, NoteRead, Pagination

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "http://localhost:5000/api"
DEFAULT_TIMEOUT = 10.0
DEFAULT_RETRY_ATTEMPTS = 3
DEFAULT_RETRY_DELAY = 1.0
FALLBACK_PAGE_LIMIT = 20

ModelT = TypeVar("ModelT", bound=BaseModel)


@dataclass(frozen=True)
class NoteFilters:
    """Query for the list endpoint; unset fields are left to server defaults."""

    page: Optional[int] = None
    limit: Optional[int] = None
    search: Optional[str] = None
    sort_by: Optional[str] = None
    sort_order: Optional[str] = None
    archived: Optional[bool] = None

    def to_params(self) -> Dict[str, Any]:
        params = {
            "page": self.page,
            "limit": self.limit,
            "search": self.search,
            "sortBy": self.sort_by,
            "sortOrder": self.sort_order,
            "archived": self.archived,
        }
        return {key: value for key, value in params.items() if value is not None and value != ""}


@dataclass
class NotePage:
    notes: List[NoteRead] = field(default_factory=list)
    pagination: Optional[Pagination] = None


def fallback_pagination(count: int) -> Pagination:
    return Pagination(
        current_page=1,
        total_pages=1,
        total_count=count,
        has_next_page=False,
        has_prev_page=False,
        limit=FALLBACK_PAGE_LIMIT,
    )


def _is_transient(exc: BaseException) -> bool:
    if isinstance(exc, httpx.HTTPStatusError):
        return exc.response.status_code >= 500
    return isinstance(exc, httpx.TransportError)


def _wire_keys(data: Mapping[str, Any]) -> Dict[str, Any]:
    """snake_case keys become camelCase; camelCase keys pass through."""
    return {to_camel(key) if "_" in key else key: value for key, value in data.items()}


class NotesAPI:
    """
    Client for the notes REST API.

    Usage:
        async with NotesAPI("http://localhost:5000/api") as api:
            page = await api.get_notes(NoteFilters(limit=10))
            note = await api.create_note({"title": "Groceries", "content": "Milk"})

    Every method raises ApiError on failure.
    """

    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = DEFAULT_TIMEOUT,
        retry_attempts: int = DEFAULT_RETRY_ATTEMPTS,
        retry_delay: float = DEFAULT_RETRY_DELAY,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.retry_attempts = retry_attempts
        self.retry_delay = retry_delay
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            timeout=timeout,
            transport=transport,
            headers={"Accept": "application/json"},
        )

    async def __aenter__(self) -> "NotesAPI":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    async def close(self) -> None:
        await self._client.aclose()

    # ── Transport ─────────────────────────────────────────────────────────
    def _retrying(self) -> AsyncRetrying:
        return AsyncRetrying(
            stop=stop_after_attempt(self.retry_attempts),
            wait=wait_exponential(multiplier=self.retry_delay),
            retry=retry_if_exception(_is_transient),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )

    async def _send(self, method: str, path: str, **kwargs) -> httpx.Response:
        response = await self._client.request(method, path, **kwargs)
        logger.debug("%s %s -> %d", method, response.request.url, response.status_code)
        response.raise_for_status()
        return response

    async def _request(self, method: str, path: str, **kwargs) -> Dict[str, Any]:
        try:
            if method == "GET":
                async for attempt in self._retrying():
                    with attempt:
                        response = await self._send(method, path, **kwargs)
            else:
                response = await self._send(method, path, **kwargs)
        except httpx.HTTPError as exc:
            error = ApiError.from_exception(exc)
            logger.warning("%s %s failed: %s %s", method, path, error.code, error.message)
            raise error from exc

        try:
            body = response.json()
        except ValueError as exc:
            raise ApiError.from_exception(exc) from exc
        return body if isinstance(body, dict) else {}

    @staticmethod
    def _parse(model: Type[ModelT], data: Any) -> ModelT:
        """Validate part of a response body; a malformed payload is an UNKNOWN_ERROR."""
        try:
            return model.model_validate(data)
        except PydanticValidationError as exc:
            logger.warning("Malformed %s in response (%d validation errors)", model.__name__, exc.error_count())
            raise ApiError(message=INVALID_RESPONSE_MESSAGE, code="UNKNOWN_ERROR", status=0) from exc

    def _notes(self, body: Dict[str, Any]) -> List[NoteRead]:
        return [self._parse(NoteRead, item) for item in body.get("data") or []]

    def _entity(self, body: Dict[str, Any], message: str) -> NoteRead:
        data = body.get("data")
        if not data:
            raise ApiError(message=message, code="UNKNOWN_ERROR", status=0)
        return self._parse(NoteRead, data)

    # ── Operations ────────────────────────────────────────────────────────
    async def get_notes(self, filters: Optional[NoteFilters] = None) -> NotePage:
        params = filters.to_params() if filters else {}
        body = await self._request("GET", "/notes", params=params)
        notes = self._notes(body)
        pagination = body.get("pagination")
        return NotePage(
            notes=notes,
            pagination=self._parse(Pagination, pagination) if pagination else fallback_pagination(len(notes)),
        )

    async def get_note(self, note_id: str) -> NoteRead:
        body = await self._request("GET", f"/notes/{note_id}")
        return self._entity(body, NOT_FOUND_MESSAGE)

    async def search_notes(self, query: str, limit: Optional[int] = None) -> List[NoteRead]:
        params: Dict[str, Any] = {"q": query}
        if limit:
            params["limit"] = limit
        body = await self._request("GET", "/notes/search", params=params)
        return self._notes(body)

    async def create_note(self, data: Mapping[str, Any]) -> NoteRead:
        body = await self._request("POST", "/notes", json=_wire_keys(data))
        return self._entity(body, "Failed to create note. Please try again.")

    async def update_note(self, note_id: str, data: Mapping[str, Any]) -> NoteRead:
        body = await self._request("PUT", f"/notes/{note_id}", json=_wire_keys(data))
        return self._entity(body, "Failed to update note. Please try again.")

    async def toggle_archive(self, note_id: str) -> NoteRead:
        body = await self._request("PATCH", f"/notes/{note_id}/archive")
        return self._entity(body, "Failed to update note. Please try again.")

    async def delete_note(self, note_id: str) -> Optional[DeletedNote]:
        body = await self._request("DELETE", f"/notes/{note_id}")
        data = body.get("data")
        return self._parse(DeletedNote, data) if data else None

    async def health(self) -> Dict[str, Any]:
        """GET /health, which lives outside the /api prefix."""
        url = self._client.base_url.copy_with(path="/health")
        return await self._request("GET", str(url))
