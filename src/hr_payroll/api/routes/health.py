"""Health check endpoints."""

import logging
from datetime import datetime, timezone

from fastapi import APIRouter, status
from pydantic import BaseModel
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from hr_payroll import __version__
from hr_payroll.api.dependencies import DbSession, Services
from hr_payroll.collaborators import InMemoryDirectory

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


class HealthResponse(BaseModel):
    """Service health, including the wiring of its collaborators."""

    status: str
    version: str
    timestamp: datetime
    database: str
    notifier: str
    directory: str


@router.get(
    "/health",
    response_model=HealthResponse,
    status_code=status.HTTP_200_OK,
)
async def health_check(db: DbSession, services: Services) -> HealthResponse:
    """Probe the database and report which adapters are in use.

    Collaborators are not called here; a slow directory must not fail the probe.
    """
    try:
        await db.execute(text("SELECT 1"))
        database = "healthy"
    except (SQLAlchemyError, OSError) as e:
        logger.warning("Database health probe failed: %s", e)
        database = "unhealthy"

    return HealthResponse(
        status="healthy" if database == "healthy" else "degraded",
        version=__version__,
        timestamp=datetime.now(timezone.utc),
        database=database,
        notifier=services.notifier.notifier_name,
        directory="memory" if isinstance(services.directory, InMemoryDirectory) else "http",
    )


@router.get("/ready", status_code=status.HTTP_200_OK)
async def readiness_check(services: Services) -> dict[str, str]:
    """Ready once payroll services are wired (503 before that)."""
    return {"status": "ready"}


@router.get("/live", status_code=status.HTTP_200_OK)
async def liveness_check() -> dict[str, str]:
    return {"status": "alive"}
