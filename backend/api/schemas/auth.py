"""
OAuth flow schemas.
"""

from pydantic import BaseModel, ConfigDict, Field


class OAuthStatePayload(BaseModel):
    """Payload carried inside the signed state token."""

    model_config = ConfigDict(populate_by_name=True, extra="forbid")

    user_id: str = Field(..., alias="userId", min_length=1)
    callback_url: str = Field(..., alias="callbackUrl", min_length=1)
    state: str | None = None

    def to_json_bytes(self) -> bytes:
        return self.model_dump_json(by_alias=True).encode("utf-8")

    @classmethod
    def from_json_bytes(cls, data: bytes) -> "OAuthStatePayload":
        return cls.model_validate_json(data)
