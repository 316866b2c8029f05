"""API Routes."""

from fastapi import APIRouter

from .account import router as account_router
from .auth import router as auth_router
from .compliance import router as compliance_router
from .health import router as health_router
from .publish import router as publish_router
from .webhooks import router as webhooks_router

# Create main API router (mounted under API_PREFIX)
api_router = APIRouter()

# Include route modules
api_router.include_router(auth_router)
api_router.include_router(webhooks_router)
api_router.include_router(publish_router)
api_router.include_router(account_router)
api_router.include_router(compliance_router)

__all__ = ["api_router", "health_router"]
