"""
HTTP client for the downstream backend.

Message events go to ``/messages``, comment events to ``/comments`` and
every other event to ``/events``. Requests carry the shared internal API
key in the ``x-api-key`` header.
"""

import logging
from typing import Any

import httpx

from core.domain.events import CommentEvent, MessageEvent, WebhookEvent

logger = logging.getLogger(__name__)


class DownstreamError(Exception):
    """Raised when the downstream backend rejects or cannot receive an event."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class DownstreamClient:
    """Posts events to the downstream backend."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        base_url: str,
        api_key: str | None = None,
        timeout: float = 10.0,
    ):
        self.client = client
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout

        if not self.api_key:
            logger.warning("INTERNAL_API_KEY not configured; downstream requests are unauthenticated")

    def endpoint_for(self, event: WebhookEvent) -> str:
        if isinstance(event, MessageEvent):
            return f"{self.base_url}/messages"
        if isinstance(event, CommentEvent):
            return f"{self.base_url}/comments"
        return f"{self.base_url}/events"

    async def deliver(self, event: WebhookEvent) -> None:
        """
        Deliver one event.

        Raises:
            DownstreamError: On transport failure or a non-2xx response
        """
        await self.post(self.endpoint_for(event), event.to_payload(), event_type=event.event_tag)

    async def post(self, url: str, payload: dict[str, Any], event_type: str | None = None) -> None:
        """POST a JSON payload with the internal API key."""
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["x-api-key"] = self.api_key

        try:
            response = await self.client.post(
                url, json=payload, headers=headers, timeout=self.timeout
            )
        except httpx.HTTPError as e:
            raise DownstreamError(f"Downstream request failed: {type(e).__name__}") from e

        if not response.is_success:
            raise DownstreamError(
                f"Downstream responded with HTTP {response.status_code}",
                status_code=response.status_code,
            )

        logger.debug(
            "Event delivered downstream",
            extra={"event_type": event_type, "status_code": response.status_code},
        )
