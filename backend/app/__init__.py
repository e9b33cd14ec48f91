"""
Notes Backend — Application Package Initializer
=================================================

What: The `app` package: a notes REST API plus the client used to talk to it.
Who:  Imported by uvicorn (app.main:app), Alembic, pytest and the client.

Architecture Note:

    ┌─────────────────────────────────────┐
    │           Routes (API Layer)        │  ← HTTP concerns only
    ├─────────────────────────────────────┤
    │       Services (Repository ops)     │  ← Queries, lifecycle rules
    ├─────────────────────────────────────┤
    │       Models & Schemas (Data)       │  ← SQLAlchemy ORM + Pydantic
    ├─────────────────────────────────────┤
    │     Database (Connection owner)     │  ← Async engine, pool, state
    └─────────────────────────────────────┘

    app.client sits on the other side of HTTP: NotesAPI speaks the wire
    protocol and NotesStore keeps a cached, paginated list of notes.
"""

__version__ = "1.0.0"
