"""Health check endpoints."""

import time
from datetime import UTC, datetime
from typing import Annotated

from fastapi import APIRouter, Depends

from api.dependencies import get_event_forwarder
from api.middleware.rate_limit import limiter
from infrastructure.config import get_settings
from services.event_forwarder import EventForwarder

router = APIRouter()
settings = get_settings()

_started = time.monotonic()


@router.get("/health")
@limiter.exempt
async def health_check(
    forwarder: Annotated[EventForwarder, Depends(get_event_forwarder)],
):
    """Basic health check with forwarder counters."""
    return {
        "status": "healthy",
        "service": settings.app_name,
        "version": settings.app_version,
        "uptime": round(time.monotonic() - _started, 3),
        "timestamp": datetime.now(UTC).isoformat(),
        "environment": settings.environment,
        "forwarder": forwarder.stats(),
    }


@router.get("/health/live")
@limiter.exempt
async def liveness_check():
    """Kubernetes-style liveness probe."""
    return {"alive": True}
