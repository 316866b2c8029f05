"""
Instagram Graph API adapter.

Provides the platform HTTP capability used by the OAuth flow and the
publishing workflow. Instagram Business accounts connect through Facebook
Login and publish through the container API:

- create a media container (POST /{ig-user-id}/media)
- poll its status_code until FINISHED (GET /{container-id})
- publish it (POST /{ig-user-id}/media_publish)

Every non-2xx response and every Graph ``error`` body is raised as
``UpstreamError``; transport failures are raised as generic upstream errors.
"""

import logging
from datetime import UTC, datetime, timedelta
from typing import Any
from urllib.parse import urlencode

import httpx

from .base import (
    AuthResult,
    BaseSocialAdapter,
    ContainerHandle,
    ContainerStatus,
    MediaSpec,
    PublishingLimit,
    TokenInfo,
    UpstreamError,
)

logger = logging.getLogger(__name__)

DEFAULT_GRAPH_VERSION = "v20.0"

# Default quota when the platform omits config.quota_total
DEFAULT_PUBLISHING_QUOTA = 50


class InstagramAdapter(BaseSocialAdapter):
    """
    Instagram Graph API adapter.

    The shared ``httpx.AsyncClient`` is injected so connection pooling and
    shutdown are owned by the application, and so tests can mount a
    ``httpx.MockTransport``.
    """

    # OAuth scopes required for publishing, messaging and comments
    SCOPES = [
        "instagram_basic",  # Read profile info
        "instagram_content_publish",  # Create posts
        "instagram_manage_messages",  # Direct message webhooks
        "instagram_manage_comments",  # Comment webhooks
        "pages_show_list",  # Enumerate linked Facebook Pages
        "pages_read_engagement",  # Read page / IG account data
    ]

    def __init__(
        self,
        client: httpx.AsyncClient,
        app_id: str,
        app_secret: str,
        api_version: str = DEFAULT_GRAPH_VERSION,
        timeout: float = 30.0,
    ):
        """
        Initialize Instagram adapter.

        Args:
            client: Shared HTTP client
            app_id: Meta App ID
            app_secret: Meta App Secret
            api_version: Graph API version, e.g. ``v20.0``
            timeout: Request timeout in seconds
        """
        self.client = client
        self.app_id = app_id
        self.app_secret = app_secret
        self.api_version = api_version
        self.timeout = timeout

        if not all([self.app_id, self.app_secret]):
            logger.warning(
                "Instagram OAuth credentials not configured. "
                "Set INSTAGRAM_APP_ID and INSTAGRAM_APP_SECRET."
            )

    @property
    def api_base_url(self) -> str:
        return f"https://graph.facebook.com/{self.api_version}"

    @property
    def oauth_auth_url(self) -> str:
        return f"https://www.facebook.com/{self.api_version}/dialog/oauth"

    @property
    def oauth_token_url(self) -> str:
        return f"{self.api_base_url}/oauth/access_token"

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    async def _request(
        self,
        method: str,
        url: str,
        default_message: str,
        params: dict[str, Any] | None = None,
        data: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Send a Graph request and return the decoded JSON object."""
        try:
            response = await self.client.request(
                method, url, params=params, data=data, timeout=self.timeout
            )
        except httpx.HTTPError as e:
            logger.error("HTTP error calling Graph API (%s): %s", default_message, type(e).__name__)
            raise UpstreamError(f"{default_message}: {type(e).__name__}") from e

        try:
            body = response.json() if response.content else {}
        except ValueError:
            body = {"raw": response.text}

        if response.status_code >= 400 or (isinstance(body, dict) and "error" in body):
            error = UpstreamError.from_response(response.status_code, body, default_message)
            logger.error(
                "Graph API error: %s (status=%s code=%s subcode=%s kind=%s)",
                error.message,
                error.http_status,
                error.platform_code,
                error.subcode,
                error.kind.value,
            )
            raise error

        if not isinstance(body, dict):
            raise UpstreamError(default_message, http_status=response.status_code, body=body)
        return body

    # ------------------------------------------------------------------
    # OAuth helpers
    # ------------------------------------------------------------------

    def get_authorization_url(self, redirect_uri: str, state: str) -> str:
        """
        Generate the Facebook Login dialog URL with Instagram scopes.

        Args:
            redirect_uri: Callback URL registered with the Meta app
            state: Signed state token

        Returns:
            Authorization URL to redirect the user to
        """
        params = {
            "client_id": self.app_id,
            "redirect_uri": redirect_uri,
            "response_type": "code",
            "scope": ",".join(self.SCOPES),
            "state": state,
        }
        return f"{self.oauth_auth_url}?{urlencode(params)}"

    async def exchange_code(self, code: str, redirect_uri: str) -> AuthResult:
        """
        Exchange an authorization code for a long-lived token and account.

        Args:
            code: Authorization code from the OAuth callback
            redirect_uri: The redirect URI used to obtain the code

        Returns:
            AuthResult for the linked Instagram Business account

        Raises:
            UpstreamError: If any exchange step or the account lookup fails
        """
        token_data = await self._request(
            "GET",
            self.oauth_token_url,
            "Token exchange failed",
            params={
                "client_id": self.app_id,
                "client_secret": self.app_secret,
                "redirect_uri": redirect_uri,
                "code": code,
            },
        )
        short_token = token_data.get("access_token")
        if not short_token:
            raise UpstreamError("Token response missing 'access_token'", body=token_data)

        long_lived = await self.refresh_token(short_token)
        account = await self._get_instagram_account(long_lived.access_token)

        result = AuthResult(
            instagram_user_id=str(account["id"]),
            access_token=long_lived.access_token,
            username=account.get("username"),
            account_type=account.get("account_type"),
            expires_in=long_lived.expires_in,
            expires_at=long_lived.expires_at,
        )
        logger.info(
            "Instagram authentication successful",
            extra={"account_id": result.instagram_user_id},
        )
        return result

    async def refresh_token(self, access_token: str) -> TokenInfo:
        """
        Exchange a valid token for a fresh long-lived token (about 60 days).

        Args:
            access_token: Short-lived or long-lived user access token

        Returns:
            TokenInfo with the new token and its lifetime

        Raises:
            UpstreamError: If the exchange fails
        """
        data = await self._request(
            "GET",
            self.oauth_token_url,
            "Long-lived token exchange failed",
            params={
                "grant_type": "fb_exchange_token",
                "client_id": self.app_id,
                "client_secret": self.app_secret,
                "fb_exchange_token": access_token,
            },
        )
        token = data.get("access_token")
        if not token:
            raise UpstreamError("Token response missing 'access_token'", body=data)

        expires_in = data.get("expires_in")
        try:
            expires_in = int(expires_in) if expires_in is not None else None
        except (TypeError, ValueError):
            expires_in = None
        expires_at = (
            datetime.now(UTC) + timedelta(seconds=expires_in) if expires_in is not None else None
        )
        return TokenInfo(access_token=token, expires_in=expires_in, expires_at=expires_at)

    async def _get_instagram_account(self, access_token: str) -> dict[str, Any]:
        """
        Resolve the Instagram Business Account linked to the user's Pages.

        Returns:
            Account data with at least ``id``

        Raises:
            UpstreamError: If no linked account exists
        """
        pages = await self._request(
            "GET",
            f"{self.api_base_url}/me/accounts",
            "Failed to list Facebook Pages",
            params={"fields": "id,name,instagram_business_account", "access_token": access_token},
        )
        for page in pages.get("data", []):
            ig_data = page.get("instagram_business_account") or {}
            ig_id = ig_data.get("id")
            if not ig_id:
                continue

            # Profile fields are best effort; the id alone is enough to publish
            try:
                return await self._request(
                    "GET",
                    f"{self.api_base_url}/{ig_id}",
                    "Failed to fetch Instagram profile",
                    params={"fields": "id,username,account_type", "access_token": access_token},
                )
            except UpstreamError:
                try:
                    return await self._request(
                        "GET",
                        f"{self.api_base_url}/{ig_id}",
                        "Failed to fetch Instagram profile",
                        params={"fields": "id,username", "access_token": access_token},
                    )
                except UpstreamError:
                    logger.warning("Instagram profile lookup failed, using account id only")
                    return {"id": ig_id}

        raise UpstreamError(
            "No Instagram Business Account found. "
            "Ensure the Facebook Page has a linked Instagram Business Account."
        )

    # ------------------------------------------------------------------
    # Containers
    # ------------------------------------------------------------------

    async def create_container(
        self, account_id: str, media_spec: MediaSpec, access_token: str
    ) -> str:
        """Create a media container and return its id."""
        data = {**media_spec.to_params(), "access_token": access_token}
        body = await self._request(
            "POST",
            f"{self.api_base_url}/{account_id}/media",
            "Container creation failed",
            data=data,
        )
        container_id = body.get("id")
        if not container_id:
            raise UpstreamError("Container creation response missing 'id'", body=body)
        logger.info(
            "Created %s container",
            media_spec.media_type.value,
            extra={"account_id": account_id, "container_id": container_id},
        )
        return str(container_id)

    async def get_container_status(
        self, container_id: str, access_token: str
    ) -> ContainerHandle:
        """Fetch a container's status_code."""
        body = await self._request(
            "GET",
            f"{self.api_base_url}/{container_id}",
            "Container status check failed",
            params={"fields": "status_code,status", "access_token": access_token},
        )
        raw = body.get("status_code")
        try:
            status_code = ContainerStatus(raw)
        except ValueError:
            raise UpstreamError(
                f"Unexpected container status_code: {raw!r}", body=body
            ) from None
        return ContainerHandle(
            container_id=container_id,
            status_code=status_code,
            status=body.get("status"),
        )

    async def publish_container(
        self, account_id: str, container_id: str, access_token: str
    ) -> str:
        """Publish a finished container and return the media id."""
        body = await self._request(
            "POST",
            f"{self.api_base_url}/{account_id}/media_publish",
            "Publish failed",
            data={"creation_id": container_id, "access_token": access_token},
        )
        media_id = body.get("id")
        if not media_id:
            raise UpstreamError("Publish response missing 'id'", body=body)
        logger.info(
            "Published container",
            extra={"account_id": account_id, "container_id": container_id},
        )
        return str(media_id)

    async def get_permalink(self, media_id: str, access_token: str) -> str | None:
        """Return the media permalink, or None when it cannot be fetched."""
        try:
            body = await self._request(
                "GET",
                f"{self.api_base_url}/{media_id}",
                "Permalink lookup failed",
                params={"fields": "permalink", "access_token": access_token},
            )
        except UpstreamError:
            return None
        return body.get("permalink")

    async def get_publishing_limit(self, account_id: str, access_token: str) -> PublishingLimit:
        """Read config.quota_total and quota_usage for the account."""
        body = await self._request(
            "GET",
            f"{self.api_base_url}/{account_id}/content_publishing_limit",
            "Publishing limit lookup failed",
            params={"fields": "config,quota_usage", "access_token": access_token},
        )
        entries = body.get("data") or [{}]
        entry = entries[0] if isinstance(entries[0], dict) else {}
        config = entry.get("config") or {}
        return PublishingLimit(
            used=int(entry.get("quota_usage") or 0),
            total=int(config.get("quota_total") or DEFAULT_PUBLISHING_QUOTA),
        )
