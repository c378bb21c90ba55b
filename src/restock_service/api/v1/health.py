"""Health check endpoints."""

from datetime import datetime, timezone
from typing import Any

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from restock_service import __version__
from restock_service.api.dependencies import get_cache, get_database
from restock_service.config import Settings, get_settings
from restock_service.infrastructure.database import Database
from restock_service.infrastructure.redis import CacheService

router = APIRouter()


class HealthResponse(BaseModel):
    """Health check response model."""

    status: str
    version: str
    environment: str
    timestamp: str
    dependencies: dict[str, Any]


class ReadinessResponse(BaseModel):
    """Readiness check response model."""

    ready: bool
    checks: dict[str, bool]


@router.get("/health", response_model=HealthResponse)
async def health_check(settings: Settings = Depends(get_settings)) -> HealthResponse:
    """
    Basic health check endpoint.

    Returns the service status and version information.
    """
    return HealthResponse(
        status="healthy",
        version=__version__,
        environment=settings.app_env,
        timestamp=datetime.now(timezone.utc).isoformat(),
        dependencies={
            "postgres": "configured",
            "redis": "configured",
            "whatsapp": "configured" if settings.twilio_account_sid else "missing",
        },
    )


@router.get("/health/ready", response_model=ReadinessResponse)
async def readiness_check(
    database: Database = Depends(get_database),
    cache: CacheService = Depends(get_cache),
) -> ReadinessResponse:
    """
    Readiness check endpoint.

    Storage must answer for the service to be ready. Redis is reported but
    optional: the cache degrades to a no-op without it.
    """
    checks = {
        "postgres": await database.ping(),
        "redis": await cache.health_check(),
    }
    return ReadinessResponse(ready=checks["postgres"], checks=checks)


@router.get("/health/live")
async def liveness_check() -> dict[str, str]:
    """Returns 200 while the process is running."""
    return {"status": "alive"}
