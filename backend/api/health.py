"""
Tribeworks Health Check Endpoints
Liveness and readiness checks for the API and its scheduler broker.
"""

import asyncio
import logging
import time
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

import redis.asyncio as aioredis
from fastapi import APIRouter, Response, status
from pydantic import BaseModel
from sqlalchemy import text

from backend.core.config import settings
from backend.database import AsyncSessionLocal

logger = logging.getLogger(__name__)


# =============================================================================
# Health Status Models
# =============================================================================


class HealthStatus(str, Enum):
    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNHEALTHY = "unhealthy"


class ComponentHealth(BaseModel):
    """Health status for an individual component."""

    status: HealthStatus
    latency_ms: Optional[float] = None
    message: Optional[str] = None


class HealthResponse(BaseModel):
    status: HealthStatus
    timestamp: str
    components: dict[str, Any]
    version: str


class LivenessResponse(BaseModel):
    status: str


# =============================================================================
# Health Check Functions
# =============================================================================


async def check_database() -> ComponentHealth:
    """Run SELECT 1 and measure latency."""
    start_time = time.perf_counter()
    try:
        async with AsyncSessionLocal() as session:
            await session.execute(text("SELECT 1"))
        latency = (time.perf_counter() - start_time) * 1000
        return ComponentHealth(
            status=HealthStatus.HEALTHY,
            latency_ms=round(latency, 2),
            message="Database connection successful",
        )
    except Exception as e:
        latency = (time.perf_counter() - start_time) * 1000
        logger.error(f"Database health check failed: {e}")
        return ComponentHealth(
            status=HealthStatus.UNHEALTHY,
            latency_ms=round(latency, 2),
            message=f"Database connection failed: {str(e)}",
        )


async def check_broker() -> ComponentHealth:
    """
    PING the Celery broker.

    Without the broker the deadline sweep stops running on schedule, but the
    request surface keeps working, so a failure only degrades the service.
    """
    start_time = time.perf_counter()
    try:
        redis_client = aioredis.from_url(
            settings.celery_broker_url,
            socket_timeout=5.0,
            socket_connect_timeout=5.0,
        )
        try:
            await redis_client.ping()
        finally:
            await redis_client.aclose()
        latency = (time.perf_counter() - start_time) * 1000
        return ComponentHealth(
            status=HealthStatus.HEALTHY,
            latency_ms=round(latency, 2),
            message="Broker connection successful",
        )
    except Exception as e:
        latency = (time.perf_counter() - start_time) * 1000
        logger.warning(f"Broker health check failed: {e}")
        return ComponentHealth(
            status=HealthStatus.DEGRADED,
            latency_ms=round(latency, 2),
            message=f"Broker connection failed: {str(e)}",
        )


def determine_overall_status(components: dict[str, ComponentHealth]) -> HealthStatus:
    """The database is critical; anything else only degrades."""
    db_status = components.get("database")
    if db_status and db_status.status == HealthStatus.UNHEALTHY:
        return HealthStatus.UNHEALTHY
    if any(c.status != HealthStatus.HEALTHY for c in components.values()):
        return HealthStatus.DEGRADED
    return HealthStatus.HEALTHY


# =============================================================================
# Router Definition
# =============================================================================

router = APIRouter(prefix="/health", tags=["Health"])


@router.get(
    "",
    response_model=LivenessResponse,
    summary="Basic liveness check",
)
async def basic_health() -> LivenessResponse:
    return LivenessResponse(status="ok")


@router.get(
    "/ready",
    response_model=HealthResponse,
    summary="Readiness check",
    responses={503: {"description": "Database unavailable"}},
)
async def readiness_check(response: Response) -> HealthResponse:
    """Verify the database and the scheduler broker concurrently."""
    db_check, broker_check = await asyncio.gather(check_database(), check_broker())
    components = {"database": db_check, "broker": broker_check}

    overall_status = determine_overall_status(components)
    if overall_status == HealthStatus.UNHEALTHY:
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE

    return HealthResponse(
        status=overall_status,
        timestamp=datetime.now(timezone.utc).isoformat(),
        components={name: c.model_dump(mode="json") for name, c in components.items()},
        version=settings.app_version,
    )
