"""
Notes Client — List Store
===========================

What:  The client-side source of truth for a paginated, filtered list of
       notes: a cache of the server's state, never the authority.
Why:   A pure reducer makes every transition testable without HTTP and
       keeps mutation failures out of the list's own error state.
How:   All state lives in an immutable `NotesState`. Every change is an
       action passed through the pure `reduce()` function; subscribers
       are notified with the new state after each action.
Who:   Anything rendering a note list (CLIs, UIs, tests).

State machine:
    IDLE ──fetch──▶ LOADING ──ok──▶ SUCCESS
                       └────fail──▶ ERROR    (previous list kept)
    `is_refreshing` tracks background refreshes independently, so a
    refresh never blanks the list being shown.

Mutations (create, update, delete, archive) touch the cache only after
the server confirms them. Their failures are raised to the caller and
never stored in `error`, which belongs to list loading.

Stale responses:
    Each fetch takes a generation number. A response whose generation is
    no longer current (a newer fetch started, or the store was unmounted)
    is dropped.
"""

import logging
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Callable, List, Mapping, Optional, Tuple, Union
from uuid import UUID

from app.client.api import NoteFilters, NotePage, NotesAPI
from app.client.errors import ApiError
from app.schemas.note import NoteRead, Pagination

logger = logging.getLogger(__name__)

FETCH_NOTES_ERROR = "Failed to load notes. Please refresh the page."

NoteId = Union[str, UUID]


class LoadingState(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    SUCCESS = "success"
    ERROR = "error"


def initial_pagination() -> Pagination:
    return Pagination(
        current_page=1,
        total_pages=1,
        total_count=0,
        has_next_page=False,
        has_prev_page=False,
        limit=20,
    )


@dataclass(frozen=True)
class NotesState:
    notes: Tuple[NoteRead, ...] = ()
    pagination: Pagination = field(default_factory=initial_pagination)
    filters: NoteFilters = field(default_factory=NoteFilters)
    loading: LoadingState = LoadingState.IDLE
    is_refreshing: bool = False
    error: Optional[str] = None

    @property
    def is_loading(self) -> bool:
        return self.loading == LoadingState.LOADING

    @property
    def is_idle(self) -> bool:
        return self.loading == LoadingState.IDLE

    @property
    def has_error(self) -> bool:
        return self.loading == LoadingState.ERROR


# ── Actions ───────────────────────────────────────────────────────────────
@dataclass(frozen=True)
class FetchStarted:
    refresh: bool = False


@dataclass(frozen=True)
class FetchSucceeded:
    page: NotePage
    refresh: bool = False


@dataclass(frozen=True)
class FetchFailed:
    message: str
    refresh: bool = False


@dataclass(frozen=True)
class NoteCreated:
    note: NoteRead


@dataclass(frozen=True)
class NoteReplaced:
    """An update or archive toggle confirmed by the server."""

    note: NoteRead


@dataclass(frozen=True)
class NoteDeleted:
    note_id: UUID


@dataclass(frozen=True)
class FiltersChanged:
    filters: NoteFilters


@dataclass(frozen=True)
class ErrorCleared:
    pass


Action = Union[
    FetchStarted,
    FetchSucceeded,
    FetchFailed,
    NoteCreated,
    NoteReplaced,
    NoteDeleted,
    FiltersChanged,
    ErrorCleared,
]


def _count_delta(pagination: Pagination, delta: int) -> Pagination:
    return pagination.model_copy(update={"total_count": max(0, pagination.total_count + delta)})


def reduce(state: NotesState, action: Action) -> NotesState:
    """Pure transition function: returns the state after `action`."""
    if isinstance(action, FetchStarted):
        if action.refresh:
            return replace(state, is_refreshing=True, error=None)
        return replace(state, loading=LoadingState.LOADING, is_refreshing=False, error=None)

    if isinstance(action, FetchSucceeded):
        return replace(
            state,
            notes=tuple(action.page.notes),
            pagination=action.page.pagination or state.pagination,
            loading=LoadingState.SUCCESS,
            is_refreshing=False,
        )

    if isinstance(action, FetchFailed):
        loading = state.loading
        if not action.refresh or loading == LoadingState.LOADING:
            loading = LoadingState.ERROR
        return replace(state, loading=loading, is_refreshing=False, error=action.message)

    if isinstance(action, NoteCreated):
        return replace(
            state,
            notes=(action.note,) + state.notes,
            pagination=_count_delta(state.pagination, 1),
        )

    if isinstance(action, NoteReplaced):
        return replace(
            state,
            notes=tuple(action.note if note.id == action.note.id else note for note in state.notes),
        )

    if isinstance(action, NoteDeleted):
        return replace(
            state,
            notes=tuple(note for note in state.notes if note.id != action.note_id),
            pagination=_count_delta(state.pagination, -1),
        )

    if isinstance(action, FiltersChanged):
        return replace(state, filters=action.filters, error=None)

    if isinstance(action, ErrorCleared):
        loading = LoadingState.IDLE if state.loading == LoadingState.ERROR else state.loading
        return replace(state, loading=loading, error=None)

    raise TypeError(f"Unknown action: {action!r}")


Listener = Callable[[NotesState], None]


class NotesStore:
    """
    Cached, paginated note list backed by a NotesAPI.

    Usage:
        store = NotesStore(api, NoteFilters(limit=10))
        unsubscribe = store.subscribe(render)
        await store.mount()            # fetches when auto_fetch is on
        await store.create_note({"title": "Groceries", "content": "Milk"})
        await store.next_page()
        store.unmount()                # later responses are dropped
    """

    def __init__(
        self,
        api: NotesAPI,
        filters: Optional[NoteFilters] = None,
        auto_fetch: bool = True,
    ):
        self._api = api
        self._initial_filters = filters or NoteFilters()
        self.auto_fetch = auto_fetch
        self._state = NotesState(filters=self._initial_filters)
        self._listeners: List[Listener] = []
        self._generation = 0
        self._mounted = True

    # ── State & subscriptions ─────────────────────────────────────────────
    @property
    def state(self) -> NotesState:
        return self._state

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a change listener; returns the function that removes it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def dispatch(self, action: Action) -> NotesState:
        self._state = reduce(self._state, action)
        for listener in list(self._listeners):
            listener(self._state)
        return self._state

    # ── Lifecycle ─────────────────────────────────────────────────────────
    async def mount(self) -> None:
        self._mounted = True
        if self.auto_fetch:
            await self.fetch_notes()

    def unmount(self) -> None:
        self._mounted = False
        self._generation += 1

    @property
    def mounted(self) -> bool:
        return self._mounted

    # ── Loading ───────────────────────────────────────────────────────────
    async def fetch_notes(self) -> None:
        await self._load(refresh=False)

    async def refresh_notes(self) -> None:
        """Reload the current page without leaving the rendered list."""
        await self._load(refresh=True)

    async def _load(self, refresh: bool) -> None:
        if not self._mounted:
            return
        self._generation += 1
        generation = self._generation
        self.dispatch(FetchStarted(refresh=refresh))
        try:
            page = await self._api.get_notes(self._state.filters)
        except ApiError as exc:
            if generation != self._generation:
                return
            logger.warning("Loading notes failed: %s", exc.message)
            self.dispatch(FetchFailed(message=exc.message or FETCH_NOTES_ERROR, refresh=refresh))
            return

        if generation != self._generation:
            logger.debug("Dropping stale notes response (generation %d)", generation)
            return
        self.dispatch(FetchSucceeded(page=page, refresh=refresh))

    # ── Mutations ─────────────────────────────────────────────────────────
    async def create_note(self, data: Mapping[str, Any]) -> NoteRead:
        note = await self._api.create_note(data)
        if self._mounted:
            self.dispatch(NoteCreated(note))
        return note

    async def update_note(self, note_id: NoteId, data: Mapping[str, Any]) -> NoteRead:
        note = await self._api.update_note(str(note_id), data)
        if self._mounted:
            self.dispatch(NoteReplaced(note))
        return note

    async def archive_note(self, note_id: NoteId) -> NoteRead:
        note = await self._api.toggle_archive(str(note_id))
        if self._mounted:
            self.dispatch(NoteReplaced(note))
        return note

    async def delete_note(self, note_id: NoteId) -> None:
        await self._api.delete_note(str(note_id))
        if self._mounted:
            # The server parses ids with uuid.UUID, so any spelling it accepted parses here
            self.dispatch(NoteDeleted(UUID(str(note_id))))

    async def search_notes(self, query: str, limit: Optional[int] = None) -> List[NoteRead]:
        """Passthrough search; results are returned, not cached."""
        return await self._api.search_notes(query, limit=limit)

    # ── Filters & pagination ──────────────────────────────────────────────
    async def update_filters(self, **changes: Any) -> None:
        self.dispatch(FiltersChanged(replace(self._state.filters, **changes)))
        if self.auto_fetch:
            await self.fetch_notes()

    async def reset_filters(self) -> None:
        self.dispatch(FiltersChanged(self._initial_filters))
        if self.auto_fetch:
            await self.fetch_notes()

    async def go_to_page(self, page: int) -> None:
        await self.update_filters(page=page)

    async def next_page(self) -> None:
        pagination = self._state.pagination
        if pagination.has_next_page:
            await self.go_to_page(pagination.current_page + 1)

    async def previous_page(self) -> None:
        pagination = self._state.pagination
        if pagination.has_prev_page:
            await self.go_to_page(pagination.current_page - 1)

    def clear_error(self) -> None:
        self.dispatch(ErrorCleared())
