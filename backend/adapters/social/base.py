"""
Base classes and interfaces for the Instagram Graph API adapter.

Provides the abstract adapter interface used by the publishing workflow,
the data structures exchanged with it, and the failure taxonomy shared by
every platform call.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum
from typing import Any


class ContainerStatus(StrEnum):
    """Processing states reported for a media container."""

    IN_PROGRESS = "IN_PROGRESS"
    FINISHED = "FINISHED"
    ERROR = "ERROR"
    EXPIRED = "EXPIRED"
    PUBLISHED = "PUBLISHED"


class MediaType(StrEnum):
    """Container media types accepted by the content publishing API."""

    IMAGE = "IMAGE"
    VIDEO = "VIDEO"
    REELS = "REELS"
    CAROUSEL = "CAROUSEL"


class UpstreamErrorKind(StrEnum):
    """Classification of platform failures."""

    TOKEN_EXPIRED = "token_expired"
    RATE_LIMITED = "rate_limited"
    PERMISSION_DENIED = "permission_denied"
    GENERIC = "generic"


@dataclass
class MediaSpec:
    """Parameters for creating a single media container."""

    media_type: MediaType
    image_url: str | None = None
    video_url: str | None = None
    caption: str | None = None
    cover_url: str | None = None
    share_to_feed: bool | None = None
    is_carousel_item: bool = False
    children: list[str] = field(default_factory=list)

    def to_params(self) -> dict[str, str]:
        """Convert to Graph API form parameters."""
        params: dict[str, str] = {}
        if self.media_type == MediaType.CAROUSEL:
            params["media_type"] = MediaType.CAROUSEL.value
            params["children"] = ",".join(self.children)
        elif self.media_type == MediaType.IMAGE:
            params["image_url"] = self.image_url or ""
        else:
            params["media_type"] = self.media_type.value
            params["video_url"] = self.video_url or ""
            if self.cover_url:
                params["cover_url"] = self.cover_url
            if self.media_type == MediaType.REELS and self.share_to_feed is not None:
                params["share_to_feed"] = "true" if self.share_to_feed else "false"

        if self.is_carousel_item:
            params["is_carousel_item"] = "true"
        elif self.caption:
            params["caption"] = self.caption
        return params


@dataclass
class ContainerHandle:
    """A media container and its last observed status."""

    container_id: str
    status_code: ContainerStatus = ContainerStatus.IN_PROGRESS
    status: str | None = None


@dataclass
class PublishResult:
    """Result of a completed publish."""

    media_id: str
    container_id: str
    instagram_url: str | None = None

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "success": True,
            "media_id": self.media_id,
            "instagram_url": self.instagram_url,
        }


@dataclass
class PublishingLimit:
    """Content publishing quota for the rolling 24 hour window."""

    used: int
    total: int

    @property
    def remaining(self) -> int:
        return max(self.total - self.used, 0)

    @property
    def limit_reached(self) -> bool:
        return self.used >= self.total

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "quota_usage": self.used,
            "quota_total": self.total,
            "quota_remaining": self.remaining,
            "usage_percentage": round(self.used / self.total * 100, 2) if self.total else 0.0,
            "limit_reached": self.limit_reached,
        }


@dataclass
class TokenInfo:
    """A long-lived access token and its lifetime."""

    access_token: str
    expires_in: int | None = None
    expires_at: datetime | None = None

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "access_token": self.access_token,
            "expires_in": self.expires_in,
            "expires_at": self.expires_at.isoformat() if self.expires_at else None,
        }


@dataclass
class AuthResult:
    """Outcome of a successful code exchange."""

    instagram_user_id: str
    access_token: str
    username: str | None = None
    account_type: str | None = None
    expires_in: int | None = None
    expires_at: datetime | None = None

    def to_query(self) -> dict[str, str]:
        """Fields appended to the caller's callback URL."""
        query = {
            "instagramUserId": self.instagram_user_id,
            "accessToken": self.access_token,
        }
        if self.username:
            query["username"] = self.username
        if self.expires_in is not None:
            query["expiresIn"] = str(self.expires_in)
        if self.expires_at is not None:
            query["expiresAt"] = self.expires_at.isoformat()
        if self.account_type:
            query["accountType"] = self.account_type
        return query


# Custom Exceptions
class SocialAdapterError(Exception):
    """Base exception for adapter and publishing errors."""

    pass


class InvalidArgumentError(SocialAdapterError):
    """Raised when a request is rejected before any platform call is made."""

    pass


# Graph error codes grouped by failure kind
_TOKEN_EXPIRED_CODES = {102, 190, 463, 467}
_RATE_LIMIT_CODES = {4, 17, 32, 613}
_RATE_LIMIT_SUBCODES = {2207042}
_PERMISSION_CODES = {10}


class UpstreamError(SocialAdapterError):
    """Raised when the platform returns an error or cannot be reached."""

    def __init__(
        self,
        message: str,
        http_status: int | None = None,
        platform_code: int | None = None,
        subcode: int | None = None,
        body: Any = None,
    ):
        super().__init__(message)
        self.message = message
        self.http_status = http_status
        self.platform_code = platform_code
        self.subcode = subcode
        self.body = body

    @property
    def kind(self) -> UpstreamErrorKind:
        code = self.platform_code
        if code in _TOKEN_EXPIRED_CODES or self.http_status == 401:
            return UpstreamErrorKind.TOKEN_EXPIRED
        if (
            code in _RATE_LIMIT_CODES
            or self.subcode in _RATE_LIMIT_SUBCODES
            or self.http_status == 429
        ):
            return UpstreamErrorKind.RATE_LIMITED
        if (
            code in _PERMISSION_CODES
            or (code is not None and 200 <= code <= 299)
            or self.http_status == 403
        ):
            return UpstreamErrorKind.PERMISSION_DENIED
        return UpstreamErrorKind.GENERIC

    @classmethod
    def from_response(cls, http_status: int, body: Any, default_message: str) -> "UpstreamError":
        """Build from a Graph API response body (``{"error": {...}}`` when present)."""
        error = body.get("error") if isinstance(body, dict) else None
        if not isinstance(error, dict):
            return cls(default_message, http_status=http_status, body=body)
        return cls(
            error.get("message") or default_message,
            http_status=http_status,
            platform_code=_as_int(error.get("code")),
            subcode=_as_int(error.get("error_subcode")),
            body=body,
        )


def _as_int(value: Any) -> int | None:
    try:
        return int(value) if value is not None else None
    except (TypeError, ValueError):
        return None


class ContainerFailedError(SocialAdapterError):
    """Raised when a container reaches a terminal non-publishable state."""

    def __init__(self, container_id: str, status_code: str, reason: str | None = None):
        detail = f": {reason}" if reason else ""
        super().__init__(f"Container {container_id} is {status_code}{detail}")
        self.container_id = container_id
        self.status_code = status_code
        self.reason = reason


class PublishTimeoutError(SocialAdapterError):
    """Raised when a container does not finish processing within its poll budget."""

    def __init__(self, container_id: str, attempts: int):
        super().__init__(
            f"Container {container_id} not ready after {attempts} status checks"
        )
        self.container_id = container_id
        self.attempts = attempts


class BaseSocialAdapter(ABC):
    """
    Abstract interface for the platform capability used by publishing.

    Implementations own transport concerns; callers see only the data
    structures and exceptions defined in this module.
    """

    @abstractmethod
    async def create_container(
        self, account_id: str, media_spec: MediaSpec, access_token: str
    ) -> str:
        """
        Create a media container.

        Args:
            account_id: Instagram Business Account ID
            media_spec: Container parameters
            access_token: Account access token

        Returns:
            Container ID

        Raises:
            UpstreamError: If the platform rejects the request
        """
        pass

    @abstractmethod
    async def get_container_status(
        self, container_id: str, access_token: str
    ) -> ContainerHandle:
        """
        Fetch the processing status of a container.

        Raises:
            UpstreamError: If the status request fails
        """
        pass

    @abstractmethod
    async def publish_container(
        self, account_id: str, container_id: str, access_token: str
    ) -> str:
        """
        Publish a finished container.

        Returns:
            Published media ID

        Raises:
            UpstreamError: If publishing fails
        """
        pass

    @abstractmethod
    async def get_publishing_limit(self, account_id: str, access_token: str) -> PublishingLimit:
        """
        Read the account's content publishing quota.

        Raises:
            UpstreamError: If the request fails
        """
        pass

    async def get_permalink(self, media_id: str, access_token: str) -> str | None:
        """Return the public URL of a published media object, if available."""
        return None
