"""
Notes Backend — FastAPI Application Factory
=============================================

What:  Creates and configures the FastAPI application instance.
Why:   Tests build the app around their own Database; production builds
       it from settings. Both go through the same factory.
How:   Factory pattern: create_app() returns a configured FastAPI instance;
       `serve()` is the console entry point that validates configuration
       and runs uvicorn.
Who:   uvicorn (app.main:app), the `notes-backend` script, tests.

Application Architecture:
    ┌────────────────────────────────────────────────────────┐
    │                      FastAPI App                       │
    │                                                        │
    │  Middleware (outermost first):                         │
    │  Request ID → Logging → GZip → CORS → Error boundary   │
    │                                                        │
    │  Routes:                                               │
    │  /api/notes[...]  (notes.py)     /health (health.py)   │
    │                                                        │
    │  Exception handlers: every failure → classify → JSON   │
    └────────────────────────────────────────────────────────┘

Lifecycle:
    Startup:
    1. Initialize logging
    2. Validate configuration (abort startup when invalid)
    3. Open the Database (connection pool + SELECT 1)

    Shutdown:
    1. uvicorn stops accepting connections and drains in-flight requests,
       giving up after SHUTDOWN_GRACE_PERIOD seconds
    2. Close the Database (dispose every pooled connection)
"""

import logging
import sys
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

import uvicorn
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from app import __version__
from app.config import settings
from app.database import Database, log_connection_state
from app.exceptions import NotesAppError
from app.middleware.errors import ErrorBoundaryMiddleware, error_response
from app.middleware.logging import RequestLoggingMiddleware
from app.middleware.request_id import REQUEST_ID_HEADER, RequestIDMiddleware
from app.routes import health, notes

logger = logging.getLogger(__name__)


# ══════════════════════════════════════════════════════════════════════════
# Logging Configuration
# ══════════════════════════════════════════════════════════════════════════

def setup_logging() -> None:
    """
    Configure the root logger for the whole process.

    Format: %(asctime)s [%(levelname)s] %(name)s: %(message)s, to stdout so
    container runtimes capture it.
    """
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )

    # Third-party libraries log every operation at INFO/DEBUG
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)


# ══════════════════════════════════════════════════════════════════════════
# Application Lifespan (Startup & Shutdown)
# ══════════════════════════════════════════════════════════════════════════

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Open the note store on startup and close it on shutdown.

    Invalid configuration or an unreachable database raises here, which
    makes uvicorn abort startup before it serves any request.
    """
    # ── Startup ───────────────────────────────────────────────────────────
    setup_logging()
    logger.info("=" * 60)
    logger.info("Notes Backend %s starting up...", __version__)

    try:
        settings.validate_required()
    except ValueError as e:
        logger.error("Configuration error: %s", str(e))
        raise

    logger.info("Configuration: %s", settings.log_summary())

    database: Database = app.state.database
    database.add_observer(log_connection_state)
    await database.open()

    logger.info("Server ready at http://%s:%d", settings.backend_host, settings.backend_port)
    logger.info("=" * 60)

    yield

    # ── Shutdown ──────────────────────────────────────────────────────────
    logger.info("Notes Backend shutting down...")
    await database.close()
    database.remove_observer(log_connection_state)
    logger.info("Shutdown complete.")


# ══════════════════════════════════════════════════════════════════════════
# Exception Handlers
# ══════════════════════════════════════════════════════════════════════════

def register_exception_handlers(app: FastAPI) -> None:
    """
    Route every failure family through the same classifier.

    Handled here:
        NotesAppError            our own exceptions (validation, not found, ...)
        RequestValidationError   FastAPI body/query/path validation
        SQLAlchemyError          store failures (unavailable, integrity, ...)
        OSError                  socket-level failures reaching the driver
        HTTPException            unknown routes, unsupported methods
    Anything else is caught by ErrorBoundaryMiddleware and classified the
    same way (500 Unclassified).
    """

    async def handle(request: Request, exc: Exception):
        return error_response(request, exc)

    for exc_class in (
        NotesAppError,
        RequestValidationError,
        SQLAlchemyError,
        OSError,
        StarletteHTTPException,
    ):
        app.add_exception_handler(exc_class, handle)


# ══════════════════════════════════════════════════════════════════════════
# Application Factory
# ══════════════════════════════════════════════════════════════════════════

def create_app(database: Optional[Database] = None) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        database: Store to serve from. Defaults to one built from
                  DATABASE_URL; tests pass an already opened in-memory one.
    """
    app = FastAPI(
        title="Notes API",
        description="Create, organize, search and archive notes.",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )
    app.state.database = database or Database(settings.database_url)

    # ── Register Middleware ───────────────────────────────────────────────
    # Last added runs first: RequestID → Logging → GZip → CORS → ErrorBoundary
    app.add_middleware(ErrorBoundaryMiddleware)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["*"],
        expose_headers=[REQUEST_ID_HEADER],
    )

    app.add_middleware(GZipMiddleware, minimum_size=500)

    app.add_middleware(RequestLoggingMiddleware)

    app.add_middleware(RequestIDMiddleware)

    # ── Register Exception Handlers ───────────────────────────────────────
    register_exception_handlers(app)

    # ── Register Routes ───────────────────────────────────────────────────
    app.include_router(notes.router)
    app.include_router(health.router)

    return app


def serve() -> None:
    """
    Console entry point: validate configuration, then run uvicorn.

    Exits with status 1 before binding any socket when the configuration
    is invalid.
    """
    setup_logging()
    try:
        settings.validate_required()
    except ValueError as e:
        logger.error("Configuration error: %s", str(e))
        sys.exit(1)

    uvicorn.run(
        "app.main:app",
        host=settings.backend_host,
        port=settings.backend_port,
        log_level=settings.log_level.lower(),
        timeout_graceful_shutdown=settings.shutdown_grace_period,
    )


# ── Application Instance ─────────────────────────────────────────────────
# uvicorn expects `app.main:app` to be importable
app = create_app()
