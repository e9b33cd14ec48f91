"""
Notes Client
==============

Python client for the notes API:
    - NotesAPI:    HTTP adapter (httpx + tenacity), raises ApiError
    - NotesStore:  reducer-driven cache of a filtered, paginated note list
"""

from app.client.api import NoteFilters, NotePage, NotesAPI
from app.client.errors import ApiError
from app.client.store import LoadingState, NotesState, NotesStore, reduce

__all__ = [
    "ApiError",
    "LoadingState",
    "NoteFilters",
    "NotePage",
    "NotesAPI",
    "NotesState",
    "NotesStore",
    "reduce",
]
