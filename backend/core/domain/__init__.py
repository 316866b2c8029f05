# Domain Entities
# Pure business objects with no external dependencies
from .events import (
    CommentEvent,
    ComplianceEvent,
    EventType,
    MentionEvent,
    MessageEvent,
    MessageKind,
    PostbackEvent,
    ReactionEvent,
    ReadEvent,
    StoryInsightEvent,
    UnknownFieldEvent,
    WebhookEvent,
    conversation_id_for,
)

__all__ = [
    "WebhookEvent",
    "EventType",
    "MessageKind",
    "MessageEvent",
    "ReactionEvent",
    "ReadEvent",
    "PostbackEvent",
    "CommentEvent",
    "ComplianceEvent",
    "MentionEvent",
    "StoryInsightEvent",
    "UnknownFieldEvent",
    "conversation_id_for",
]
