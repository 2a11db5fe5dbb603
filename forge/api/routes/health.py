"""Health check API routes.

Provides REST API endpoints for health monitoring and readiness checks.

Endpoints:
- GET /health       - service status, uptime and in-flight pipeline count
- GET /health/ready - store reachable and runner initialized
- GET /health/live  - process alive
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from enum import Enum

from fastapi import APIRouter, Request
from pydantic import BaseModel, Field

from forge import __version__
from forge.core.config import get_settings
from forge.core.exceptions import StoreError
from forge.models import BriefStatus


logger = logging.getLogger(__name__)


# =============================================================================
# Router Configuration
# =============================================================================

router = APIRouter(
    prefix="/health",
    tags=["Health"],
)


# =============================================================================
# Enums
# =============================================================================

class HealthStatus(str, Enum):
    """Health status enum."""

    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNHEALTHY = "unhealthy"


# =============================================================================
# Response Models
# =============================================================================

class HealthResponse(BaseModel):
    """Response model for health check.

    Attributes:
        status: Overall service status
        service: Service name
        version: Service version
        timestamp: Check timestamp (ISO format)
        uptime_seconds: Service uptime in seconds
        active_pipelines: Briefs with an execution in progress
    """

    status: HealthStatus = Field(
        default=HealthStatus.HEALTHY,
        description="Overall service status",
    )
    service: str = Field(..., description="Service name")
    version: str = Field(default=__version__, description="Service version")
    timestamp: str = Field(
        default_factory=lambda: datetime.now(UTC).isoformat(),
        description="Check timestamp",
    )
    uptime_seconds: float | None = Field(
        default=None,
        description="Service uptime in seconds",
    )
    active_pipelines: int = Field(
        default=0,
        description="Briefs with an execution in progress",
    )


class ReadinessResponse(BaseModel):
    """Response model for readiness check."""

    ready: bool = Field(
        default=True,
        description="Whether service is ready",
    )
    checks: dict[str, bool] = Field(
        default_factory=dict,
        description="Individual check results",
    )


class LivenessResponse(BaseModel):
    """Response model for liveness check."""

    alive: bool = Field(
        default=True,
        description="Whether service is alive",
    )
    timestamp: str = Field(
        default_factory=lambda: datetime.now(UTC).isoformat(),
        description="Check timestamp",
    )


# =============================================================================
# Service Start Time
# =============================================================================

_service_start_time: datetime | None = None


def set_service_start_time(start_time: datetime | None = None) -> None:
    """Set the service start time for uptime calculation.

    Args:
        start_time: Service start time, defaults to now
    """
    global _service_start_time
    _service_start_time = start_time or datetime.now(UTC)


def get_uptime_seconds() -> float | None:
    """Get service uptime in seconds, or None if start time not set."""
    if _service_start_time is None:
        return None

    delta = datetime.now(UTC) - _service_start_time
    return delta.total_seconds()


# =============================================================================
# Checks
# =============================================================================

async def check_store(request: Request) -> bool:
    store = getattr(request.app.state, "store", None)
    if store is None:
        return False
    try:
        await store.list_briefs(status=BriefStatus.EVALUATING)
    except StoreError as e:
        logger.warning("Store readiness check failed: %s", e)
        return False
    return True


# =============================================================================
# API Endpoints
# =============================================================================

@router.get(
    "",
    response_model=HealthResponse,
    summary="Health check",
    description="Returns service status, uptime and in-flight pipeline count.",
)
async def health_check(request: Request) -> HealthResponse:
    runner = getattr(request.app.state, "runner", None)
    status = HealthStatus.HEALTHY if runner is not None else HealthStatus.DEGRADED

    return HealthResponse(
        status=status,
        service=get_settings().service_name,
        uptime_seconds=get_uptime_seconds(),
        active_pipelines=runner.active_count if runner is not None else 0,
    )


@router.get(
    "/ready",
    response_model=ReadinessResponse,
    summary="Readiness check",
    description="Returns whether the service is ready to accept traffic.",
)
async def readiness_check(request: Request) -> ReadinessResponse:
    """Kubernetes-style readiness probe."""
    checks = {
        "runner": getattr(request.app.state, "runner", None) is not None,
        "store": await check_store(request),
    }
    return ReadinessResponse(
        ready=all(checks.values()),
        checks=checks,
    )


@router.get(
    "/live",
    response_model=LivenessResponse,
    summary="Liveness check",
    description="Returns whether the service is alive.",
)
async def liveness_check() -> LivenessResponse:
    """Kubernetes-style liveness probe."""
    return LivenessResponse(
        alive=True,
        timestamp=datetime.now(UTC).isoformat(),
    )


__all__ = [
    "HealthResponse",
    "HealthStatus",
    "LivenessResponse",
    "ReadinessResponse",
    "check_store",
    "get_uptime_seconds",
    "router",
    "set_service_start_time",
]
