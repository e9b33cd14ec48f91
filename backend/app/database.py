"""
Notes Backend — Database Connection Ownership
===============================================

What:  `Database` owns the async SQLAlchemy engine (and with it the
       connection pool), the session factory and the connection state.
Why:   An explicit object instead of a module-level engine lets tests
       build isolated stores and lets the health check read a typed state.
How:   The application creates one `Database`, stores it on `app.state`,
       opens it during lifespan startup and closes it on shutdown. Routes
       receive a per-request session through `get_db_session`.
Who:   main.py (lifecycle), routes (sessions), health check (state), tests.

Connection states:
    DISCONNECTED ──open()──▶ CONNECTING ──ok──▶ CONNECTED ──close()──▶ CLOSED
                                 │                 │   ▲
                                 └──fail──▶ ERROR  │   │ next successful checkout or ping
                                                   ▼   │
                                              DISCONNECTED (driver lost the link,
                                                            or a health ping failed)

Observers registered with `add_observer` are called with
`(previous_state, new_state)` on every transition.

Pooling:
    PostgreSQL: QueuePool sized from settings, pre-ping, hourly recycle.
    SQLite (tests, local dev): a single shared connection (StaticPool) so an
    in-memory database survives across sessions.
"""

import logging
from enum import Enum
from typing import AsyncGenerator, Callable, List, Optional

from fastapi import Request
from sqlalchemy import event, text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.pool import StaticPool

from app.config import settings
from app.exceptions import StoreUnavailableError

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    """Base class for all ORM models; its metadata drives Alembic and create_all()."""
    pass


class ConnectionState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    ERROR = "error"
    CLOSED = "closed"


ConnectionObserver = Callable[[ConnectionState, ConnectionState], None]


def _engine_options(url: str) -> dict:
    if url.startswith("sqlite"):
        return {
            "poolclass": StaticPool,
            "connect_args": {"check_same_thread": False},
        }
    options = {
        "pool_size": settings.db_pool_size,
        "max_overflow": settings.db_max_overflow,
        "pool_pre_ping": settings.db_pool_pre_ping,
        "pool_recycle": 3600,
    }
    if url.startswith("postgresql+asyncpg"):
        options["connect_args"] = {"timeout": settings.db_connect_timeout}
    return options


class Database:
    """
    Explicitly owned connection pool for the note store.

    Usage:
        database = Database(settings.database_url)
        await database.open()
        async with database.session() as session:
            ...
        await database.close()
    """

    def __init__(self, url: str, echo: bool = False):
        self.url = url
        self.echo = echo
        self._engine: Optional[AsyncEngine] = None
        self._session_factory: Optional[async_sessionmaker[AsyncSession]] = None
        self._state = ConnectionState.DISCONNECTED
        self._observers: List[ConnectionObserver] = []

    # ── State ─────────────────────────────────────────────────────────────
    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def is_connected(self) -> bool:
        return self._state == ConnectionState.CONNECTED

    @property
    def engine(self) -> AsyncEngine:
        if self._engine is None:
            raise StoreUnavailableError(context={"reason": "database not opened"})
        return self._engine

    def add_observer(self, observer: ConnectionObserver) -> None:
        self._observers.append(observer)

    def remove_observer(self, observer: ConnectionObserver) -> None:
        if observer in self._observers:
            self._observers.remove(observer)

    def _set_state(self, new_state: ConnectionState) -> None:
        previous = self._state
        if previous == new_state:
            return
        self._state = new_state
        for observer in list(self._observers):
            observer(previous, new_state)

    # ── Lifecycle ─────────────────────────────────────────────────────────
    async def open(self) -> None:
        """
        Create the engine and verify connectivity with `SELECT 1`.

        Idempotent: opening an already opened database does nothing.

        Raises:
            StoreUnavailableError: the database could not be reached.
        """
        if self._engine is not None:
            return

        self._set_state(ConnectionState.CONNECTING)
        self._engine = create_async_engine(self.url, echo=self.echo, **_engine_options(self.url))
        self._install_listeners(self._engine)
        self._session_factory = async_sessionmaker(
            self._engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )

        try:
            async with self._engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
        except Exception as e:
            self._set_state(ConnectionState.ERROR)
            await self._engine.dispose()
            self._engine = None
            self._session_factory = None
            raise StoreUnavailableError(context={"error_type": type(e).__name__}) from e

        self._set_state(ConnectionState.CONNECTED)

    async def close(self) -> None:
        """Dispose every pooled connection. Safe to call more than once."""
        if self._engine is not None:
            await self._engine.dispose()
        self._engine = None
        self._session_factory = None
        self._set_state(ConnectionState.CLOSED)

    async def ping(self) -> bool:
        """
        Connectivity check for the health endpoint: runs `SELECT 1`.

        A failed check on a connected store moves it to DISCONNECTED; a
        successful one on a disconnected store moves it back to CONNECTED.
        A store that was never opened (or was closed) is not touched.
        """
        if self._engine is None:
            return False
        try:
            async with self._engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
        except Exception as e:
            logger.warning("Database ping failed: %s", str(e))
            if self._state == ConnectionState.CONNECTED:
                self._set_state(ConnectionState.DISCONNECTED)
            return False

        if self._state == ConnectionState.DISCONNECTED:
            self._set_state(ConnectionState.CONNECTED)
        return True

    async def create_all(self) -> None:
        """Create tables and indexes from model metadata (tests and local dev)."""
        from app.models import note  # noqa: F401

        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    def session(self) -> AsyncSession:
        if self._session_factory is None:
            raise StoreUnavailableError(context={"reason": "database not opened"})
        return self._session_factory()

    def _install_listeners(self, engine: AsyncEngine) -> None:
        sync_engine = engine.sync_engine

        @event.listens_for(sync_engine, "handle_error")
        def _on_error(context) -> None:
            if context.is_disconnect:
                self._set_state(ConnectionState.DISCONNECTED)

        @event.listens_for(sync_engine, "checkout")
        def _on_checkout(dbapi_connection, connection_record, connection_proxy) -> None:
            if self._state == ConnectionState.DISCONNECTED:
                self._set_state(ConnectionState.CONNECTED)


def log_connection_state(previous: ConnectionState, current: ConnectionState) -> None:
    """Default observer: connect / error / disconnect / reconnect log lines."""
    if current == ConnectionState.CONNECTED and previous == ConnectionState.DISCONNECTED:
        logger.info("Database reconnected successfully")
    elif current == ConnectionState.CONNECTED:
        logger.info("Successfully connected to the database")
    elif current == ConnectionState.ERROR:
        logger.error("Failed to connect to the database")
    elif current == ConnectionState.DISCONNECTED:
        logger.warning("Database connection lost")
    elif current == ConnectionState.CLOSED:
        logger.info("Database connection closed")


# ── Session Dependency ────────────────────────────────────────────────────
async def get_db_session(request: Request) -> AsyncGenerator[AsyncSession, None]:
    """
    FastAPI dependency that provides a database session per request.

    How it works:
        1. Opens a session from the application's `Database`
        2. Yields it to the route handler
        3. On success: commits; on error: rolls back and re-raises so the
           error classifier answers the request
        4. Always: closes the session (returns the connection to the pool)
    """
    database: Database = request.app.state.database
    async with database.session() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()
