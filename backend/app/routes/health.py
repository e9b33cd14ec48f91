"""
Notes Backend — Health Check Route
====================================

What:  Liveness endpoint for monitoring and load balancer health checks.
Why:   The tracked connection state only changes when a query fails, so
       each request runs its own `SELECT 1` to catch a store that went away
       while the API was idle.
How:   Pings the store through `Database.ping()` (which updates the
       connection state), then reports process uptime, environment and
       that state.
Who:   Called by container health checks, load balancers, and the client.

The endpoint answers 200 whenever the process can serve HTTP; the
`database` field tells monitors whether the store is reachable.
"""

import logging
import time
from datetime import datetime, timezone

from fastapi import APIRouter, Request

from app.config import settings
from app.schemas.note import HealthResponse

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Health"])

# Module-level: set once when the process imports the routes
_start_time = time.time()


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Service health check",
)
async def health_check(request: Request) -> HealthResponse:
    """
    Report service liveness.

    Returns:
        HealthResponse with status, timestamp, environment, uptime and the
        database connection state (connected, disconnected, error, ...).
    """
    database = getattr(request.app.state, "database", None)
    if database is None:
        db_state = "disconnected"
    else:
        await database.ping()
        db_state = database.state.value
    if db_state != "connected":
        logger.warning("Health check: database state is %s", db_state)

    return HealthResponse(
        status="healthy",
        timestamp=datetime.now(timezone.utc),
        environment=settings.environment,
        uptime=round(time.time() - _start_time, 2),
        database=db_state,
    )
