"""
Meta compliance callback schemas.
"""

from pydantic import BaseModel


class DeauthorizeResponse(BaseModel):
    success: bool
    message: str


class DataDeletionResponse(BaseModel):
    """Status URL and code Meta shows to the user."""

    url: str
    confirmation_code: str
