"""
Container-based media publishing.

Publishing is a three step protocol per media object:

1. create a container for the media URL,
2. poll its status until the platform has finished processing it,
3. publish the finished container.

Carousels repeat steps 1-2 for each child sequentially, then create a
parent container referencing every child and run 2-3 on it. Nothing is
published until every container involved has reached FINISHED.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from adapters.social.base import (
    BaseSocialAdapter,
    ContainerFailedError,
    ContainerStatus,
    InvalidArgumentError,
    MediaSpec,
    MediaType,
    PublishingLimit,
    PublishResult,
    PublishTimeoutError,
)

logger = logging.getLogger(__name__)

CAROUSEL_MIN_ITEMS = 2
CAROUSEL_MAX_ITEMS = 10

_FAILED_STATUSES = {ContainerStatus.ERROR, ContainerStatus.EXPIRED, ContainerStatus.PUBLISHED}

SleepFn = Callable[[float], Awaitable[None]]


@dataclass(frozen=True)
class PollPolicy:
    """How many status checks to make and how long to wait between them."""

    max_attempts: int
    interval_seconds: float


@dataclass(frozen=True)
class PollPolicies:
    image: PollPolicy = PollPolicy(10, 2.0)
    video: PollPolicy = PollPolicy(60, 5.0)
    carousel: PollPolicy = PollPolicy(30, 3.0)


@dataclass
class CarouselItem:
    """One carousel child: exactly one of image_url / video_url."""

    image_url: str | None = None
    video_url: str | None = None

    def to_spec(self) -> MediaSpec:
        if self.video_url:
            return MediaSpec(
                media_type=MediaType.VIDEO, video_url=self.video_url, is_carousel_item=True
            )
        return MediaSpec(media_type=MediaType.IMAGE, image_url=self.image_url, is_carousel_item=True)


class MediaPublishWorkflow:
    """Drives the create, poll, publish protocol through a platform adapter."""

    def __init__(
        self,
        adapter: BaseSocialAdapter,
        policies: PollPolicies | None = None,
        sleep: SleepFn | None = None,
    ):
        self.adapter = adapter
        self.policies = policies or PollPolicies()
        self._sleep = sleep or asyncio.sleep

    # ------------------------------------------------------------------
    # Protocol steps
    # ------------------------------------------------------------------

    async def create_container(
        self, account_id: str, media_spec: MediaSpec, access_token: str
    ) -> str:
        return await self.adapter.create_container(account_id, media_spec, access_token)

    async def poll_until_ready(
        self, container_id: str, access_token: str, policy: PollPolicy
    ) -> None:
        """
        Wait for a container to reach FINISHED.

        Raises:
            ContainerFailedError: On ERROR, EXPIRED or PUBLISHED
            PublishTimeoutError: If still processing after ``max_attempts`` checks
        """
        attempts = max(1, policy.max_attempts)
        for attempt in range(1, attempts + 1):
            handle = await self.adapter.get_container_status(container_id, access_token)
            if handle.status_code == ContainerStatus.FINISHED:
                logger.debug(
                    "Container ready after %d checks", attempt, extra={"container_id": container_id}
                )
                return
            if handle.status_code in _FAILED_STATUSES:
                logger.warning(
                    "Container reached %s: %s",
                    handle.status_code.value,
                    handle.status,
                    extra={"container_id": container_id},
                )
                raise ContainerFailedError(container_id, handle.status_code.value, handle.status)
            if attempt < attempts:
                await self._sleep(policy.interval_seconds)

        logger.warning(
            "Container not ready after %d checks", attempts, extra={"container_id": container_id}
        )
        raise PublishTimeoutError(container_id, attempts)

    async def publish(self, account_id: str, container_id: str, access_token: str) -> str:
        return await self.adapter.publish_container(account_id, container_id, access_token)

    # ------------------------------------------------------------------
    # Workflows
    # ------------------------------------------------------------------

    async def _create_poll_publish(
        self, account_id: str, spec: MediaSpec, access_token: str, policy: PollPolicy
    ) -> PublishResult:
        container_id = await self.create_container(account_id, spec, access_token)
        await self.poll_until_ready(container_id, access_token, policy)
        media_id = await self.publish(account_id, container_id, access_token)
        return PublishResult(media_id=media_id, container_id=container_id)

    async def publish_image(
        self, account_id: str, image_url: str, access_token: str, caption: str | None = None
    ) -> PublishResult:
        """Publish a single image."""
        if not image_url:
            raise InvalidArgumentError("image_url is required")
        spec = MediaSpec(media_type=MediaType.IMAGE, image_url=image_url, caption=caption)
        return await self._create_poll_publish(account_id, spec, access_token, self.policies.image)

    async def publish_video(
        self,
        account_id: str,
        video_url: str,
        access_token: str,
        caption: str | None = None,
        media_type: MediaType = MediaType.REELS,
        cover_url: str | None = None,
        share_to_feed: bool | None = None,
    ) -> PublishResult:
        """Publish a reel (default) or feed video."""
        if not video_url:
            raise InvalidArgumentError("video_url is required")
        if media_type not in (MediaType.REELS, MediaType.VIDEO):
            raise InvalidArgumentError("media_type must be REELS or VIDEO")
        spec = MediaSpec(
            media_type=media_type,
            video_url=video_url,
            caption=caption,
            cover_url=cover_url,
            share_to_feed=share_to_feed,
        )
        return await self._create_poll_publish(account_id, spec, access_token, self.policies.video)

    async def publish_carousel(
        self,
        account_id: str,
        items: list[CarouselItem],
        access_token: str,
        caption: str | None = None,
    ) -> PublishResult:
        """
        Publish a carousel of 2 to 10 images or videos.

        Raises:
            InvalidArgumentError: Before any platform call if the item count
                                  or an item is invalid
        """
        if not CAROUSEL_MIN_ITEMS <= len(items) <= CAROUSEL_MAX_ITEMS:
            raise InvalidArgumentError(
                f"Carousel requires {CAROUSEL_MIN_ITEMS}-{CAROUSEL_MAX_ITEMS} items, got {len(items)}"
            )
        for index, item in enumerate(items):
            if bool(item.image_url) == bool(item.video_url):
                raise InvalidArgumentError(
                    f"Carousel item {index} must have exactly one of image_url or video_url"
                )

        children: list[str] = []
        for item in items:
            child_id = await self.create_container(account_id, item.to_spec(), access_token)
            policy = self.policies.video if item.video_url else self.policies.image
            await self.poll_until_ready(child_id, access_token, policy)
            children.append(child_id)

        parent = MediaSpec(media_type=MediaType.CAROUSEL, caption=caption, children=children)
        logger.info(
            "Creating carousel with %d children", len(children), extra={"account_id": account_id}
        )
        return await self._create_poll_publish(
            account_id, parent, access_token, self.policies.carousel
        )

    async def check_publishing_limit(self, account_id: str, access_token: str) -> PublishingLimit:
        """Advisory quota lookup; publishing does not consult it."""
        return await self.adapter.get_publishing_limit(account_id, access_token)
