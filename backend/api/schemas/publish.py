"""
Content publishing API schemas.
"""

from typing import Literal

from pydantic import BaseModel, Field, model_validator

# ============================================
# Requests
# ============================================


class PublishRequestBase(BaseModel):
    """Fields shared by every publish request."""

    instagram_account_id: str = Field(..., min_length=1)
    access_token: str = Field(..., min_length=1)
    caption: str | None = Field(None, max_length=2200)


class ImagePublishRequest(PublishRequestBase):
    """Publish a single image."""

    image_url: str = Field(..., min_length=1)


class VideoPublishRequest(PublishRequestBase):
    """Publish a reel or a feed video."""

    video_url: str = Field(..., min_length=1)
    cover_url: str | None = None
    media_type: Literal["REELS", "VIDEO"] = "REELS"
    share_to_feed: bool | None = None


class CarouselItemRequest(BaseModel):
    """One carousel child."""

    image_url: str | None = None
    video_url: str | None = None

    @model_validator(mode="after")
    def exactly_one_url(self) -> "CarouselItemRequest":
        if bool(self.image_url) == bool(self.video_url):
            raise ValueError("Each item needs exactly one of image_url or video_url")
        return self


class CarouselPublishRequest(PublishRequestBase):
    """Publish a carousel; the 2-10 item bound is enforced by the workflow."""

    items: list[CarouselItemRequest]


# ============================================
# Responses
# ============================================


class PublishResponse(BaseModel):
    """Successful publish."""

    success: bool = True
    media_id: str
    instagram_url: str | None = None
