"""
Pytest configuration and shared fixtures for backend tests.
"""

import os
import sys
from pathlib import Path

# Add backend directory to path for imports
backend_dir = Path(__file__).parent.parent
sys.path.insert(0, str(backend_dir))

# Settings are read at import time; configure before importing the app
os.environ.setdefault("ENVIRONMENT", "testing")
os.environ.setdefault("STATE_SECRET_KEY", "test-state-secret-0123456789abcdef0123456789")
os.environ.setdefault("INSTAGRAM_APP_ID", "test-app-id")
os.environ.setdefault("INSTAGRAM_APP_SECRET", "test-app-secret")
os.environ.setdefault("VERIFY_TOKEN", "test-verify-token")
os.environ.setdefault("INTERNAL_API_KEY", "test-internal-key")
os.environ.setdefault("DOWNSTREAM_BACKEND_URL", "http://downstream.test/api/webhooks/instagram")
os.environ.setdefault("DEFAULT_CALLBACK_URL", "https://app.test/instagram/callback")
os.environ.setdefault("FRONTEND_URL", "https://app.test")

import itertools
from collections.abc import AsyncGenerator
from typing import Any

import httpx
import pytest
from httpx import ASGITransport, AsyncClient

from adapters.social import InstagramAdapter
from core.domain.events import WebhookEvent
from infrastructure.config import get_settings
from services.event_forwarder import EventForwarder
from services.publish_workflow import MediaPublishWorkflow, PollPolicies, PollPolicy

settings = get_settings()


# ============================================================================
# Graph API stub
# ============================================================================


class GraphStub:
    """
    httpx.MockTransport handler imitating the Graph API endpoints we call.

    ``statuses`` holds the status_code values returned by successive
    container status checks (FINISHED once exhausted). ``overrides`` maps
    ``(method, path)`` to a canned response, e.g. ``("POST", "123/media")``.
    """

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self.statuses: list[str] = []
        self.overrides: dict[tuple[str, str], httpx.Response] = {}
        self._container_ids = itertools.count(1)

    def calls(self, method: str | None = None, suffix: str | None = None) -> list[httpx.Request]:
        return [
            r
            for r in self.requests
            if (method is None or r.method == method)
            and (suffix is None or r.url.path.endswith(suffix))
        ]

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        # Strip the leading "/vXX.X/"
        path = "/".join(request.url.path.split("/")[2:])
        params = request.url.params

        override = self.overrides.get((request.method, path))
        if override is not None:
            return override

        if path == "oauth/access_token":
            if params.get("grant_type") == "fb_exchange_token":
                return httpx.Response(
                    200, json={"access_token": "long-lived-token", "expires_in": 5184000}
                )
            return httpx.Response(200, json={"access_token": "short-lived-token"})

        if path == "me/accounts":
            return httpx.Response(
                200,
                json={
                    "data": [
                        {"id": "page-1", "name": "No IG"},
                        {"id": "page-2", "name": "Acme", "instagram_business_account": {"id": "123"}},
                    ]
                },
            )

        if request.method == "POST" and path.endswith("/media"):
            return httpx.Response(200, json={"id": f"container-{next(self._container_ids)}"})

        if request.method == "POST" and path.endswith("/media_publish"):
            return httpx.Response(200, json={"id": "media-1"})

        if path.endswith("/content_publishing_limit"):
            return httpx.Response(
                200, json={"data": [{"quota_usage": 5, "config": {"quota_total": 50}}]}
            )

        if path.startswith("container-"):
            status = self.statuses.pop(0) if self.statuses else "FINISHED"
            return httpx.Response(200, json={"status_code": status, "id": path})

        if path == "media-1":
            return httpx.Response(200, json={"permalink": "https://www.instagram.com/p/ABC123/"})

        if path == "123":
            return httpx.Response(
                200, json={"id": "123", "username": "acme", "account_type": "BUSINESS"}
            )

        return httpx.Response(404, json={"error": {"message": f"Unknown path {path}", "code": 803}})


def graph_error(status: int, code: int, message: str = "error", subcode: int | None = None):
    """Build a Graph-style error response."""
    error: dict[str, Any] = {"message": message, "type": "OAuthException", "code": code}
    if subcode is not None:
        error["error_subcode"] = subcode
    return httpx.Response(status, json={"error": error})


@pytest.fixture
def graph_stub() -> GraphStub:
    return GraphStub()


@pytest.fixture
def graph_error_response():
    return graph_error


@pytest.fixture
async def graph_adapter(graph_stub: GraphStub) -> AsyncGenerator[InstagramAdapter, None]:
    """InstagramAdapter wired to the Graph stub."""
    async with httpx.AsyncClient(transport=httpx.MockTransport(graph_stub)) as client:
        yield InstagramAdapter(client=client, app_id="test-app-id", app_secret="test-app-secret")


async def _no_sleep(seconds: float) -> None:
    return None


@pytest.fixture
def fast_policies() -> PollPolicies:
    return PollPolicies(
        image=PollPolicy(3, 2.0),
        video=PollPolicy(4, 5.0),
        carousel=PollPolicy(3, 3.0),
    )


@pytest.fixture
def publish_workflow(graph_adapter: InstagramAdapter, fast_policies: PollPolicies):
    return MediaPublishWorkflow(graph_adapter, policies=fast_policies, sleep=_no_sleep)


# ============================================================================
# Forwarding
# ============================================================================


class RecordingDelivery:
    """Stands in for DownstreamClient.deliver and records every event."""

    def __init__(self) -> None:
        self.events: list[WebhookEvent] = []

    async def __call__(self, event: WebhookEvent) -> None:
        self.events.append(event)


@pytest.fixture
def delivered() -> RecordingDelivery:
    return RecordingDelivery()


@pytest.fixture
async def forwarder(delivered: RecordingDelivery) -> AsyncGenerator[EventForwarder, None]:
    fwd = EventForwarder(delivered, workers=2, queue_size=100)
    yield fwd
    await fwd.shutdown(drain=False)


# ============================================================================
# API client
# ============================================================================


@pytest.fixture
async def async_client(
    graph_adapter: InstagramAdapter,
    publish_workflow: MediaPublishWorkflow,
    forwarder: EventForwarder,
) -> AsyncGenerator[AsyncClient, None]:
    """Create an async HTTP client with Graph and downstream calls stubbed."""
    # Import app here so the environment above is applied first
    from api.dependencies import get_event_forwarder, get_graph_adapter, get_publish_workflow
    from main import app

    app.dependency_overrides[get_graph_adapter] = lambda: graph_adapter
    app.dependency_overrides[get_publish_workflow] = lambda: publish_workflow
    app.dependency_overrides[get_event_forwarder] = lambda: forwarder

    # Reset rate limiter state between tests to prevent cross-test 429s
    if hasattr(app.state, "limiter"):
        app.state.limiter.reset()

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()
