"""
Instagram webhook endpoints.

The platform retries deliveries that are not acknowledged quickly, so the
POST handler only reads the raw body and returns 200. Signature
verification, classification and forwarding run as a background task after
the response has been sent; their failures never reach the platform.
"""

import hmac
import logging
from typing import Annotated

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query, Request, status
from fastapi.responses import PlainTextResponse

from api.dependencies import get_webhook_router
from api.middleware.rate_limit import limiter
from infrastructure.config.settings import settings
from services.webhook_router import WebhookEventRouter

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/webhooks", tags=["Webhooks"])

SIGNATURE_HEADER = "x-hub-signature-256"


@router.get("", response_class=PlainTextResponse)
@limiter.exempt
async def verify_subscription(
    hub_mode: Annotated[str | None, Query(alias="hub.mode")] = None,
    hub_verify_token: Annotated[str | None, Query(alias="hub.verify_token")] = None,
    hub_challenge: Annotated[str | None, Query(alias="hub.challenge")] = None,
):
    """Answer the subscription handshake by echoing ``hub.challenge``."""
    if (
        hub_mode == "subscribe"
        and settings.verify_token
        and hub_verify_token is not None
        and hmac.compare_digest(hub_verify_token.encode(), settings.verify_token.encode())
    ):
        logger.info("Webhook subscription verified")
        return PlainTextResponse(hub_challenge or "")

    logger.warning("Webhook subscription verification failed (mode=%r)", hub_mode)
    raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Verification failed")


@router.post("")
@limiter.exempt
async def receive_webhook(
    request: Request,
    background_tasks: BackgroundTasks,
    event_router: Annotated[WebhookEventRouter, Depends(get_webhook_router)],
):
    """Acknowledge a delivery immediately and process it afterwards."""
    raw_body = await request.body()
    signature = request.headers.get(SIGNATURE_HEADER)
    background_tasks.add_task(event_router.handle_delivery, raw_body, signature)
    return {"status": "received"}
