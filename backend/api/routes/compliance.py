"""
Meta compliance callbacks.

Meta calls these when a user removes the app or asks for their data to be
deleted. This service stores nothing, so both requests are verified and
forwarded to the downstream backend, which owns token and data removal.
"""

import logging
import secrets
from typing import Annotated
from urllib.parse import urlencode

from fastapi import APIRouter, Depends, Form

from adapters.social import InvalidArgumentError
from api.dependencies import get_event_forwarder
from api.schemas.compliance import DataDeletionResponse, DeauthorizeResponse
from core.domain.events import ComplianceEvent, conversation_id_for
from core.exceptions import RequestValidationFailed
from core.security import SignedRequestError, parse_signed_request
from infrastructure.config.settings import settings
from services.event_forwarder import EventForwarder

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Compliance"])


def _verified_user_id(signed_request: str | None) -> str:
    if not signed_request:
        raise RequestValidationFailed(["signed_request"])
    try:
        payload = parse_signed_request(signed_request, settings.instagram_app_secret)
    except SignedRequestError as e:
        raise InvalidArgumentError(f"Invalid signed_request: {e}") from e
    return str(payload.get("user_id") or "")


@router.post("/deauthorize", response_model=DeauthorizeResponse)
async def deauthorize(
    forwarder: Annotated[EventForwarder, Depends(get_event_forwarder)],
    signed_request: Annotated[str | None, Form()] = None,
):
    """Handle an app removal notification."""
    user_id = _verified_user_id(signed_request)
    forwarder.submit(
        ComplianceEvent(
            account_id=user_id,
            conversation_id=conversation_id_for(user_id, None),
            action="deauthorize",
            user_id=user_id,
        )
    )
    logger.info("Deauthorization received", extra={"account_id": user_id})
    return DeauthorizeResponse(success=True, message="Deauthorization processed")


@router.post("/data-deletion", response_model=DataDeletionResponse)
async def data_deletion(
    forwarder: Annotated[EventForwarder, Depends(get_event_forwarder)],
    signed_request: Annotated[str | None, Form()] = None,
):
    """Handle a data deletion request and return the status URL Meta shows the user."""
    user_id = _verified_user_id(signed_request)
    confirmation_code = secrets.token_hex(8)
    forwarder.submit(
        ComplianceEvent(
            account_id=user_id,
            conversation_id=conversation_id_for(user_id, None),
            action="data_deletion",
            user_id=user_id,
            confirmation_code=confirmation_code,
        )
    )
    logger.info("Data deletion requested", extra={"account_id": user_id})
    status_url = (
        f"{settings.frontend_url.rstrip('/')}/data-deletion-status?"
        f"{urlencode({'code': confirmation_code})}"
    )
    return DataDeletionResponse(url=status_url, confirmation_code=confirmation_code)
