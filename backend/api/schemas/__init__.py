"""
API request and response schemas.
"""

from .account import RateLimitResponse, RefreshTokenRequest, TokenResponse
from .auth import OAuthStatePayload
from .compliance import DataDeletionResponse, DeauthorizeResponse
from .publish import (
    CarouselItemRequest,
    CarouselPublishRequest,
    ImagePublishRequest,
    PublishResponse,
    VideoPublishRequest,
)

__all__ = [
    "OAuthStatePayload",
    "ImagePublishRequest",
    "VideoPublishRequest",
    "CarouselItemRequest",
    "CarouselPublishRequest",
    "PublishResponse",
    "RefreshTokenRequest",
    "TokenResponse",
    "RateLimitResponse",
    "DeauthorizeResponse",
    "DataDeletionResponse",
]
