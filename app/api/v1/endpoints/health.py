"""Health check endpoints."""

from datetime import datetime

from fastapi import APIRouter, Request, status
from pydantic import BaseModel

from app.config import settings
from app.core.redis_client import check_redis_connection
from app.database import check_database_connection

router = APIRouter()


class HealthResponse(BaseModel):
    """Health check response model."""

    status: str
    version: str
    environment: str


class SchedulerStatus(BaseModel):
    """State of the slot generation and reminder jobs."""

    state: str
    horizon_days: int | None = None
    last_generation_at: datetime | None = None
    last_reminder_at: datetime | None = None


class DetailedHealthResponse(HealthResponse):
    """Detailed health check response model."""

    database: str
    redis: str
    scheduler: SchedulerStatus


def _scheduler_status(request: Request) -> SchedulerStatus:
    scheduler = getattr(request.app.state, "scheduler", None)
    if scheduler is None:
        return SchedulerStatus(state="disabled")

    return SchedulerStatus(
        state="running" if scheduler.running else "stopped",
        horizon_days=scheduler.horizon_days,
        last_generation_at=scheduler.last_generation_at,
        last_reminder_at=scheduler.last_reminder_at,
    )


@router.get(
    "/health",
    response_model=HealthResponse,
    status_code=status.HTTP_200_OK,
    tags=["Health"],
    summary="Basic health check",
)
async def health_check() -> HealthResponse:
    """Basic health check endpoint."""
    return HealthResponse(
        status="healthy",
        version=settings.app_version,
        environment=settings.environment,
    )


@router.get(
    "/health/detailed",
    response_model=DetailedHealthResponse,
    status_code=status.HTTP_200_OK,
    tags=["Health"],
    summary="Detailed health check",
)
async def detailed_health_check(request: Request) -> DetailedHealthResponse:
    """
    Detailed health check with database, Redis and scheduler status.

    Bookings only need the database. Redis backs the doctor cache and reset
    codes, so losing it degrades the service instead of failing it. A
    stopped scheduler is also reported as degraded.
    """
    db_healthy = await check_database_connection()
    redis_healthy = await check_redis_connection()
    scheduler = _scheduler_status(request)

    if not db_healthy:
        overall = "unhealthy"
    elif not redis_healthy or scheduler.state == "stopped":
        overall = "degraded"
    else:
        overall = "healthy"

    return DetailedHealthResponse(
        status=overall,
        version=settings.app_version,
        environment=settings.environment,
        database="healthy" if db_healthy else "unhealthy",
        redis="healthy" if redis_healthy else "unhealthy",
        scheduler=scheduler,
    )


@router.get(
    "/ping",
    status_code=status.HTTP_200_OK,
    tags=["Health"],
    summary="Simple ping",
)
async def ping() -> dict[str, str]:
    """Simple ping endpoint."""
    return {"message": "pong"}
