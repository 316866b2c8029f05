"""
Downstream backend adapter.

Delivers classified webhook events to the backend that owns persistence.
"""

from .backend_client import DownstreamClient, DownstreamError

__all__ = ["DownstreamClient", "DownstreamError"]
