"""
Notes Backend — Test Configuration (conftest.py)
==================================================

What:  Shared pytest fixtures for the entire test suite.
How:   Every test that touches the store gets its own in-memory SQLite
       database (aiosqlite + StaticPool), so tests never share rows.

Fixture Hierarchy:
    Function-scoped (created fresh for each test):
    ├── database: opened `Database` with the notes table created
    │   ├── db_session: AsyncSession on that database
    │   └── test_client: HTTPX AsyncClient talking to an app bound to it
    ├── mock_db_session: Mock database session (no real DB needed)
    └── sample_note_data: Fields for a Note row
"""

import os
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock
from uuid import uuid4

# ══════════════════════════════════════════════════════════════════════════
# Environment Setup
# ══════════════════════════════════════════════════════════════════════════

# Must run before any `app` import: settings are read at import time
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["ENVIRONMENT"] = "test"
os.environ["CORS_ORIGINS"] = "http://localhost:3000"
os.environ["LOG_LEVEL"] = "WARNING"

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402

from app.database import Database  # noqa: E402

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


# ══════════════════════════════════════════════════════════════════════════
# Store Fixtures
# ══════════════════════════════════════════════════════════════════════════

@pytest_asyncio.fixture
async def database():
    """An opened in-memory database with the schema created."""
    db = Database(TEST_DATABASE_URL)
    await db.open()
    await db.create_all()
    yield db
    await db.close()


@pytest_asyncio.fixture
async def db_session(database):
    """
    A session on the test database.

    Usage:
        async def test_create(db_session):
            note = await note_service.create_note(db_session, NoteCreate(...))
    """
    async with database.session() as session:
        yield session


@pytest_asyncio.fixture
async def test_client(database):
    """
    Provides an async HTTP test client for endpoint testing.

    The app is built around the already opened test database, so the
    lifespan (which would open DATABASE_URL) is not needed.

    Usage:
        async def test_health(test_client):
            response = await test_client.get("/health")
            assert response.status_code == 200
    """
    from app.main import create_app

    app = create_app(database=database)
    transport = ASGITransport(app=app, raise_app_exceptions=False)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


# ══════════════════════════════════════════════════════════════════════════
# Mock Fixtures
# ══════════════════════════════════════════════════════════════════════════

@pytest.fixture
def mock_db_session():
    """
    Provides a mock async database session.

    Usage:
        async def test_get_note(mock_db_session):
            mock_db_session.get.return_value = None
            with pytest.raises(NotFoundError):
                await note_service.get_note(mock_db_session, uuid4())
    """
    session = AsyncMock()
    session.get = AsyncMock()
    session.scalar = AsyncMock()
    session.scalars = AsyncMock()
    session.flush = AsyncMock()
    session.delete = AsyncMock()
    session.commit = AsyncMock()
    session.rollback = AsyncMock()
    session.close = AsyncMock()
    session.add = MagicMock()
    return session


@pytest.fixture
def sample_note_data():
    """Fields for a stored Note, as the service would set them."""
    now = datetime.now(timezone.utc)
    return {
        "id": uuid4(),
        "title": "Groceries",
        "content": "Milk, eggs",
        "tags": ["home", "shopping"],
        "is_archived": False,
        "created_at": now,
        "updated_at": now,
    }
