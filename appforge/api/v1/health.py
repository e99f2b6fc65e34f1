"""
Health checks for the generation service.

GET /api/v1/health      - dependency status plus pipeline statistics
GET /api/v1/health/live - liveness probe
"""
import time
from datetime import datetime, timezone
from typing import Any, Dict

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict

from appforge.api.dependencies import get_services
from appforge.services.container import ServiceContainer
from appforge.utils.logging import get_logger

router = APIRouter()
logger = get_logger(__name__)

# Track service start time
SERVICE_START_TIME = time.time()


# ============================================================================
# RESPONSE MODELS
# ============================================================================

class LivenessResponse(BaseModel):
    """Liveness probe response"""
    status: str
    timestamp: str


class HealthResponse(BaseModel):
    """Full health response"""
    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "status": "degraded",
                "service": "AppForge Generation Service",
                "version": "0.1.0",
                "uptime_seconds": 12.5,
                "dependencies": {"redis": True, "postgres": False},
                "statistics": {"total_sessions": 0},
                "timestamp": "2025-01-01T12:00:00Z",
            }
        }
    )

    status: str  # "healthy" or "degraded"
    service: str
    version: str
    uptime_seconds: float
    dependencies: Dict[str, bool]
    statistics: Dict[str, Any]
    timestamp: str


# ============================================================================
# ENDPOINTS
# ============================================================================

@router.get("/health/live", response_model=LivenessResponse, tags=["Health"])
async def liveness() -> LivenessResponse:
    return LivenessResponse(status="alive", timestamp=datetime.now(timezone.utc).isoformat())


@router.get("/health", response_model=HealthResponse, tags=["Health"])
async def health(services: ServiceContainer = Depends(get_services)) -> HealthResponse:
    """
    Report dependency connectivity and pipeline statistics.

    The service answers requests without Redis or PostgreSQL, so a missing
    dependency reports ``degraded`` rather than failing the probe.
    """
    dependencies = await services.health()
    status = "healthy" if all(dependencies.values()) else "degraded"

    if status != "healthy":
        logger.warning("health.degraded", extra={"dependencies": dependencies})

    return HealthResponse(
        status=status,
        service=services.settings.app_name,
        version=services.settings.app_version,
        uptime_seconds=round(time.time() - SERVICE_START_TIME, 2),
        dependencies=dependencies,
        statistics={
            **services.orchestrator.get_statistics(),
            "llm": services.llm.get_stats(),
        },
        timestamp=datetime.now(timezone.utc).isoformat(),
    )
