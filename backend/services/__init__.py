"""
Service layer for publishing and webhook routing.
"""

from services.event_forwarder import EventForwarder
from services.publish_workflow import (
    CarouselItem,
    MediaPublishWorkflow,
    PollPolicies,
    PollPolicy,
)
from services.webhook_router import WebhookEventRouter, classify_message

__all__ = [
    "CarouselItem",
    "EventForwarder",
    "MediaPublishWorkflow",
    "PollPolicies",
    "PollPolicy",
    "WebhookEventRouter",
    "classify_message",
]
