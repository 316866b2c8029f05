"""
Token refresh and publishing quota routes.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request

from adapters.social import InstagramAdapter
from api.dependencies import get_graph_adapter, get_publish_workflow
from api.middleware.rate_limit import get_rate_limit, limiter
from api.schemas.account import RateLimitResponse, RefreshTokenRequest, TokenResponse
from core.exceptions import RequestValidationFailed
from services.publish_workflow import MediaPublishWorkflow

router = APIRouter(tags=["Account"])


@router.post("/refresh-token", response_model=TokenResponse)
@limiter.limit(get_rate_limit("account"))
async def refresh_token(
    request: Request,
    body: RefreshTokenRequest,
    adapter: Annotated[InstagramAdapter, Depends(get_graph_adapter)],
):
    """Exchange a valid long-lived token for a fresh one."""
    token = await adapter.refresh_token(body.access_token)
    return TokenResponse(**token.to_dict())


@router.get("/rate-limit", response_model=RateLimitResponse)
@limiter.limit(get_rate_limit("account"))
async def publishing_rate_limit(
    request: Request,
    workflow: Annotated[MediaPublishWorkflow, Depends(get_publish_workflow)],
    instagram_account_id: Annotated[str | None, Query()] = None,
    access_token: Annotated[str | None, Query()] = None,
):
    """Report the account's content publishing quota usage."""
    missing = [
        name
        for name, value in (
            ("instagram_account_id", instagram_account_id),
            ("access_token", access_token),
        )
        if not value
    ]
    if missing:
        raise RequestValidationFailed(missing)

    limit = await workflow.check_publishing_limit(instagram_account_id, access_token)
    return RateLimitResponse(**limit.to_dict())
