"""
Instagram platform adapter.

Provides the Graph API capability used by the OAuth flow and the
container-based publishing workflow.
"""

from .base import (
    AuthResult,
    BaseSocialAdapter,
    ContainerFailedError,
    ContainerHandle,
    ContainerStatus,
    InvalidArgumentError,
    MediaSpec,
    MediaType,
    PublishingLimit,
    PublishResult,
    PublishTimeoutError,
    SocialAdapterError,
    TokenInfo,
    UpstreamError,
    UpstreamErrorKind,
)
from .instagram_adapter import InstagramAdapter

__all__ = [
    # Base classes and enums
    "BaseSocialAdapter",
    "ContainerStatus",
    "MediaType",
    "UpstreamErrorKind",
    # Data structures
    "AuthResult",
    "ContainerHandle",
    "MediaSpec",
    "PublishResult",
    "PublishingLimit",
    "TokenInfo",
    # Exceptions
    "SocialAdapterError",
    "InvalidArgumentError",
    "UpstreamError",
    "ContainerFailedError",
    "PublishTimeoutError",
    # Adapters
    "InstagramAdapter",
]
