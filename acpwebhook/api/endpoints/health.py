"""Liveness and readiness endpoints."""

from datetime import datetime, timezone
from typing import Dict, Optional

from fastapi import APIRouter, Request, Response, status
from pydantic import BaseModel, Field

from acpwebhook.core.config import settings
from acpwebhook.core.logging import get_logger

logger = get_logger(__name__)

router = APIRouter()

# Track application start time
APP_START_TIME = datetime.now(timezone.utc)


class HealthStatus(BaseModel):
    """Health check response model."""

    status: str = Field(..., description="Overall health status")
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    uptime_seconds: float = Field(..., description="Application uptime in seconds")
    version: str = Field(..., description="Application version")
    environment: str = Field(..., description="Application environment")


class ReadinessStatus(BaseModel):
    """Readiness check response model."""

    ready: bool = Field(..., description="Whether the webhook can review requests")
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    quota_used: Optional[int] = Field(None, description="Policy bindings in use")
    quota_capacity: Optional[int] = Field(None, description="Maximum policy bindings")
    checks: Dict[str, bool] = Field(default_factory=dict)


@router.get(
    settings.health_check_path,
    response_model=HealthStatus,
    summary="Health Check",
    description="Kubernetes liveness check endpoint",
)
async def health_check() -> HealthStatus:
    uptime = (datetime.now(timezone.utc) - APP_START_TIME).total_seconds()

    return HealthStatus(
        status="healthy",
        uptime_seconds=uptime,
        version=settings.app_version,
        environment=settings.environment.value,
    )


@router.get(
    settings.readiness_check_path,
    response_model=ReadinessStatus,
    responses={
        200: {"description": "Webhook is ready"},
        503: {"description": "Webhook is not ready"},
    },
    summary="Readiness Check",
    description="Kubernetes readiness check endpoint",
)
async def readiness_check(request: Request, response: Response) -> ReadinessStatus:
    """Ready once the reviewer and its quota ledger are set up."""
    reviewer = getattr(request.app.state, "reviewer", None)

    if reviewer is None:
        logger.warning("Readiness check failed: reviewer not initialized")
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
        return ReadinessStatus(ready=False, checks={"reviewer": False})

    return ReadinessStatus(
        ready=True,
        quota_used=reviewer.ledger.used,
        quota_capacity=reviewer.ledger.capacity,
        checks={"reviewer": True},
    )
