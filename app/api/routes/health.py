"""
Health Check Endpoints

Health, readiness and liveness probes for load balancers and containers.
Readiness covers the database (conversations, bookings) and Redis
(webhook de-duplication).
"""

import logging
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, HTTPException, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from app.config import settings
from app.infra.database import check_db_health
from app.infra.redis import check_redis_health

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/health", tags=["Health"])

# Track application start time for uptime calculation
_start_time: Optional[datetime] = None


def set_start_time() -> None:
    """Set application start time. Called once on startup."""
    global _start_time
    _start_time = datetime.now(timezone.utc)


def get_uptime_seconds() -> Optional[float]:
    """Get application uptime in seconds."""
    if _start_time is None:
        return None
    return (datetime.now(timezone.utc) - _start_time).total_seconds()


class HealthResponse(BaseModel):
    """Basic health check response."""
    status: str
    timestamp: datetime
    version: str
    environment: str


class ReadyResponse(BaseModel):
    """Readiness check response with dependency status."""
    status: str
    timestamp: datetime
    checks: dict[str, str]


class LiveResponse(BaseModel):
    """Liveness check response."""
    status: str
    timestamp: datetime
    uptime_seconds: Optional[float] = None


class DetailedHealthResponse(BaseModel):
    """Detailed health check with booking configuration."""
    status: str
    timestamp: datetime
    version: str
    environment: str
    uptime_seconds: Optional[float]
    checks: dict[str, str]
    config: dict[str, str]


async def _run_checks() -> dict[str, str]:
    """Check database and Redis, returning "ok" / "failed" per dependency."""
    checks = {}

    db_ok = await check_db_health()
    checks["database"] = "ok" if db_ok else "failed"
    if not db_ok:
        logger.warning("Readiness check: Database unhealthy")

    # Redis only backs de-duplication, but a dead Redis still means degraded
    redis_ok = await check_redis_health()
    checks["redis"] = "ok" if redis_ok else "failed"
    if not redis_ok:
        logger.warning("Readiness check: Redis unhealthy")

    return checks


@router.get(
    "",
    response_model=HealthResponse,
    status_code=status.HTTP_200_OK,
    summary="Basic health check",
    description="Returns 200 if the application is running. Does not check dependencies.",
)
async def health() -> HealthResponse:
    """Basic health check. Use /health/ready for dependency checks."""
    return HealthResponse(
        status="healthy",
        timestamp=datetime.now(timezone.utc),
        version=settings.app_version,
        environment=settings.app_env,
    )


@router.get(
    "/ready",
    response_model=ReadyResponse,
    summary="Readiness probe",
    description="Checks database and Redis connectivity. Returns 503 if any dependency is unavailable.",
    responses={
        200: {"description": "All dependencies are ready"},
        503: {"description": "One or more dependencies are unavailable"},
    },
)
async def ready() -> ReadyResponse:
    """
    Readiness probe.

    Returns 503 if the database or Redis check fails.
    """
    checks = await _run_checks()
    all_ok = all(value == "ok" for value in checks.values())

    response = ReadyResponse(
        status="ready" if all_ok else "not_ready",
        timestamp=datetime.now(timezone.utc),
        checks=checks,
    )

    if not all_ok:
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content=response.model_dump(mode="json"),
        )

    return response


@router.get(
    "/live",
    response_model=LiveResponse,
    status_code=status.HTTP_200_OK,
    summary="Liveness probe",
    description="Returns 200 if the process is alive. Used for container restart decisions.",
)
async def live() -> LiveResponse:
    """Liveness probe. Always 200 while the process runs."""
    return LiveResponse(
        status="alive",
        timestamp=datetime.now(timezone.utc),
        uptime_seconds=get_uptime_seconds(),
    )


@router.get(
    "/detailed",
    response_model=DetailedHealthResponse,
    summary="Detailed health check",
    description="Returns dependency status and slot settings. Only available in development.",
    include_in_schema=settings.is_development,
)
async def detailed() -> DetailedHealthResponse:
    """Detailed health check, development only."""
    if not settings.is_development:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Not found",
        )

    checks = await _run_checks()

    # Safe config info (no secrets)
    config = {
        "app_name": settings.app_name,
        "environment": settings.app_env,
        "debug": str(settings.debug),
        "slot_granularity_minutes": str(settings.slot_granularity_minutes),
        "min_lead_minutes": str(settings.min_lead_minutes),
        "slot_horizon_days": str(settings.slot_horizon_days),
        "slot_page_size": str(settings.slot_page_size),
        "sms_provider_configured": str(bool(settings.cellcast_api_key)),
    }

    all_ok = all(value == "ok" for value in checks.values())

    return DetailedHealthResponse(
        status="healthy" if all_ok else "degraded",
        timestamp=datetime.now(timezone.utc),
        version=settings.app_version,
        environment=settings.app_env,
        uptime_seconds=get_uptime_seconds(),
        checks=checks,
        config=config,
    )
