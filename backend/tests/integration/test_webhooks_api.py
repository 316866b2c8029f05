"""
Integration tests for the webhook endpoints.

Covers:
- Subscription handshake (hub.challenge echo / 403)
- Deliveries are acknowledged with 200 regardless of signature
- Valid deliveries are classified and forwarded; tampered ones are not
"""

import json

from httpx import AsyncClient

from core.domain.events import CommentEvent, MessageEvent
from core.security import WebhookSignatureVerifier
from infrastructure.config import get_settings

settings = get_settings()

WEBHOOKS = f"{settings.api_prefix}/webhooks"

signer = WebhookSignatureVerifier(settings.instagram_app_secret)


def _delivery() -> bytes:
    return json.dumps(
        {
            "object": "instagram",
            "entry": [
                {
                    "id": "17841400000000000",
                    "time": 1700000000,
                    "messaging": [
                        {
                            "sender": {"id": "user-1"},
                            "recipient": {"id": "17841400000000000"},
                            "timestamp": 1700000000123,
                            "message": {"mid": "m1", "text": "hello"},
                        }
                    ],
                    "changes": [
                        {
                            "field": "comments",
                            "value": {"id": "c1", "text": "nice", "from": {"id": "user-2"}},
                        }
                    ],
                }
            ],
        }
    ).encode()


# ============================================================================
# Verification handshake
# ============================================================================


class TestSubscriptionHandshake:
    async def test_valid_token_echoes_challenge(self, async_client: AsyncClient):
        response = await async_client.get(
            WEBHOOKS,
            params={
                "hub.mode": "subscribe",
                "hub.verify_token": "test-verify-token",
                "hub.challenge": "1158201444",
            },
        )

        assert response.status_code == 200
        assert response.text == "1158201444"
        assert response.headers["content-type"].startswith("text/plain")

    async def test_wrong_token_forbidden(self, async_client: AsyncClient):
        response = await async_client.get(
            WEBHOOKS,
            params={"hub.mode": "subscribe", "hub.verify_token": "nope", "hub.challenge": "1"},
        )

        assert response.status_code == 403

    async def test_wrong_mode_forbidden(self, async_client: AsyncClient):
        response = await async_client.get(
            WEBHOOKS,
            params={
                "hub.mode": "unsubscribe",
                "hub.verify_token": "test-verify-token",
                "hub.challenge": "1",
            },
        )

        assert response.status_code == 403

    async def test_missing_params_forbidden(self, async_client: AsyncClient):
        response = await async_client.get(WEBHOOKS)
        assert response.status_code == 403


# ============================================================================
# Deliveries
# ============================================================================


class TestDeliveries:
    async def test_valid_delivery_forwarded(self, async_client: AsyncClient, forwarder, delivered):
        raw = _delivery()

        response = await async_client.post(
            WEBHOOKS,
            content=raw,
            headers={"content-type": "application/json", "x-hub-signature-256": signer.compute(raw)},
        )

        assert response.status_code == 200
        assert response.json() == {"status": "received"}

        await forwarder.join()
        message, comment = delivered.events
        assert isinstance(message, MessageEvent)
        assert message.text == "hello"
        assert isinstance(comment, CommentEvent)
        assert comment.from_id == "user-2"
        assert forwarder.stats()["delivered"] == 2

    async def test_tampered_delivery_acknowledged_but_dropped(
        self, async_client: AsyncClient, forwarder, delivered
    ):
        raw = _delivery()
        signature = signer.compute(raw)

        response = await async_client.post(
            WEBHOOKS,
            content=raw.replace(b"hello", b"HELLO"),
            headers={"content-type": "application/json", "x-hub-signature-256": signature},
        )

        assert response.status_code == 200
        await forwarder.join()
        assert delivered.events == []

    async def test_unsigned_delivery_dropped(self, async_client: AsyncClient, forwarder, delivered):
        response = await async_client.post(WEBHOOKS, content=_delivery())

        assert response.status_code == 200
        await forwarder.join()
        assert delivered.events == []

    async def test_invalid_json_acknowledged(self, async_client: AsyncClient, delivered):
        raw = b"not json at all"

        response = await async_client.post(
            WEBHOOKS, content=raw, headers={"x-hub-signature-256": signer.compute(raw)}
        )

        assert response.status_code == 200
        assert delivered.events == []

    async def test_webhooks_are_not_rate_limited(self, async_client: AsyncClient):
        raw = b"{}"
        headers = {"x-hub-signature-256": signer.compute(raw)}
        for _ in range(130):
            response = await async_client.post(WEBHOOKS, content=raw, headers=headers)
            assert response.status_code == 200
