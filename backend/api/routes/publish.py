"""
Content publishing routes.

Each request runs the full create, poll, publish protocol inside the
request; the response is sent once the media is live or the workflow has
failed. Failures are mapped to HTTP statuses by ``api.errors``.
"""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Request

from adapters.social import MediaType, PublishResult
from api.dependencies import get_publish_workflow
from api.middleware.rate_limit import get_rate_limit, limiter
from api.schemas.publish import (
    CarouselPublishRequest,
    ImagePublishRequest,
    PublishResponse,
    VideoPublishRequest,
)
from services.publish_workflow import CarouselItem, MediaPublishWorkflow

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/publish", tags=["Publishing"])

Workflow = Annotated[MediaPublishWorkflow, Depends(get_publish_workflow)]


async def _respond(
    workflow: MediaPublishWorkflow, result: PublishResult, access_token: str
) -> PublishResponse:
    result.instagram_url = await workflow.adapter.get_permalink(result.media_id, access_token)
    return PublishResponse(**result.to_dict())


@router.post("/image", response_model=PublishResponse)
@limiter.limit(get_rate_limit("publish"))
async def publish_image(request: Request, body: ImagePublishRequest, workflow: Workflow):
    """Publish a single image."""
    result = await workflow.publish_image(
        body.instagram_account_id, body.image_url, body.access_token, caption=body.caption
    )
    logger.info("Image published", extra={"account_id": body.instagram_account_id})
    return await _respond(workflow, result, body.access_token)


@router.post("/video", response_model=PublishResponse)
@limiter.limit(get_rate_limit("publish"))
async def publish_video(request: Request, body: VideoPublishRequest, workflow: Workflow):
    """Publish a reel (default) or a feed video."""
    result = await workflow.publish_video(
        body.instagram_account_id,
        body.video_url,
        body.access_token,
        caption=body.caption,
        media_type=MediaType(body.media_type),
        cover_url=body.cover_url,
        share_to_feed=body.share_to_feed,
    )
    logger.info(
        "%s published", body.media_type.title(), extra={"account_id": body.instagram_account_id}
    )
    return await _respond(workflow, result, body.access_token)


@router.post("/carousel", response_model=PublishResponse)
@limiter.limit(get_rate_limit("publish"))
async def publish_carousel(request: Request, body: CarouselPublishRequest, workflow: Workflow):
    """Publish a carousel of 2 to 10 images or videos."""
    items = [CarouselItem(image_url=i.image_url, video_url=i.video_url) for i in body.items]
    result = await workflow.publish_carousel(
        body.instagram_account_id, items, body.access_token, caption=body.caption
    )
    logger.info("Carousel published", extra={"account_id": body.instagram_account_id})
    return await _respond(workflow, result, body.access_token)
