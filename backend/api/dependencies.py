"""
API dependencies wiring settings into services.

Each provider is a cached singleton so the whole process shares one HTTP
connection pool and one forwarder queue. Tests replace them through
``app.dependency_overrides``.
"""

from functools import lru_cache
from typing import Annotated

import httpx
from fastapi import Depends

from adapters.downstream import DownstreamClient
from adapters.social import InstagramAdapter
from core.security import NonceCookieSigner, SignedStateCodec, WebhookSignatureVerifier
from infrastructure.config.settings import settings
from services.event_forwarder import EventForwarder
from services.publish_workflow import MediaPublishWorkflow, PollPolicies, PollPolicy
from services.webhook_router import WebhookEventRouter


@lru_cache
def get_http_client() -> httpx.AsyncClient:
    """Shared outbound HTTP client, closed in the application lifespan."""
    return httpx.AsyncClient(
        timeout=httpx.Timeout(settings.graph_timeout),
        follow_redirects=False,
    )


@lru_cache
def get_state_codec() -> SignedStateCodec:
    return SignedStateCodec(settings.state_secret_key)


@lru_cache
def get_nonce_signer() -> NonceCookieSigner:
    return NonceCookieSigner(settings.state_secret_key, settings.state_ttl_seconds)


def get_graph_adapter() -> InstagramAdapter:
    return InstagramAdapter(
        client=get_http_client(),
        app_id=settings.instagram_app_id,
        app_secret=settings.instagram_app_secret,
        api_version=settings.graph_api_version,
        timeout=settings.graph_timeout,
    )


def get_poll_policies() -> PollPolicies:
    return PollPolicies(
        image=PollPolicy(settings.image_poll_attempts, settings.image_poll_interval),
        video=PollPolicy(settings.video_poll_attempts, settings.video_poll_interval),
        carousel=PollPolicy(settings.carousel_poll_attempts, settings.carousel_poll_interval),
    )


def get_publish_workflow(
    adapter: Annotated[InstagramAdapter, Depends(get_graph_adapter)],
) -> MediaPublishWorkflow:
    return MediaPublishWorkflow(adapter, policies=get_poll_policies())


@lru_cache
def get_downstream_client() -> DownstreamClient:
    return DownstreamClient(
        client=get_http_client(),
        base_url=settings.downstream_backend_url,
        api_key=settings.internal_api_key,
        timeout=settings.downstream_timeout,
    )


@lru_cache
def get_event_forwarder() -> EventForwarder:
    return EventForwarder(
        get_downstream_client().deliver,
        workers=settings.forwarder_workers,
        queue_size=settings.forwarder_queue_size,
    )


@lru_cache
def get_webhook_verifier() -> WebhookSignatureVerifier:
    return WebhookSignatureVerifier(settings.instagram_app_secret)


def get_webhook_router(
    forwarder: Annotated[EventForwarder, Depends(get_event_forwarder)],
    verifier: Annotated[WebhookSignatureVerifier, Depends(get_webhook_verifier)],
) -> WebhookEventRouter:
    return WebhookEventRouter(forwarder, verifier)
