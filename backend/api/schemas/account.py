"""
Token and quota API schemas.
"""

from datetime import datetime

from pydantic import BaseModel, Field


class RefreshTokenRequest(BaseModel):
    """Refresh a long-lived access token."""

    access_token: str = Field(..., min_length=1)


class TokenResponse(BaseModel):
    """Refreshed token."""

    access_token: str
    expires_in: int | None = None
    expires_at: datetime | None = None


class RateLimitResponse(BaseModel):
    """Content publishing quota for the last 24 hours."""

    quota_usage: int
    quota_total: int
    quota_remaining: int
    usage_percentage: float
    limit_reached: bool
