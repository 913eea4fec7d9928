"""Health check endpoints.

/health reports database connectivity and whether the escalation job is
scheduled in-process. /health/live and /health/ready are the container
liveness and readiness probes.
"""

from typing import Any

from fastapi import APIRouter, Response, status
from fastapi.responses import JSONResponse

from coldchain.config import settings
from coldchain.database import check_database_connection
from coldchain.services.scheduler import get_scheduler

router = APIRouter(tags=["Health"])


def _escalation_driver() -> str:
    """How escalation ticks are driven in this process.

    "scheduler" when the interval job is registered, "cron" when ticks are
    expected from POST /api/escalate.
    """
    scheduler = get_scheduler()
    if (
        settings.escalation_check_enabled
        and scheduler is not None
        and scheduler.get_job("escalation_check") is not None
    ):
        return "scheduler"
    return "cron"


@router.get("/health", response_model=None)
async def health_check() -> Response:
    """Database status plus the active escalation driver.

    Returns 503 with status "degraded" when the database is unreachable:
    no alert can escalate without it.
    """
    driver = _escalation_driver()

    if await check_database_connection():
        return JSONResponse(
            status_code=status.HTTP_200_OK,
            content={
                "status": "healthy",
                "database": "connected",
                "escalation": driver,
            },
        )

    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={
            "status": "degraded",
            "database": "disconnected",
            "escalation": driver,
        },
    )


@router.get("/health/live")
async def liveness_probe() -> dict[str, Any]:
    """Process is up. Does not touch the database."""
    return {"status": "alive"}


@router.get("/health/ready", response_model=None)
async def readiness_probe() -> Response:
    """Ready to serve once the database answers."""
    if await check_database_connection():
        return JSONResponse(
            status_code=status.HTTP_200_OK,
            content={"status": "ready", "database": "connected"},
        )

    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"status": "not_ready", "database": "disconnected"},
    )
