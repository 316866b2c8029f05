"""Webhook event domain entities."""
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any, ClassVar, Optional
from uuid import NAMESPACE_URL, uuid5

# Namespace for deterministic conversation identifiers
CONVERSATION_NAMESPACE = uuid5(NAMESPACE_URL, "instagram-relay/conversation")


def conversation_id_for(account_id: str, counterpart_id: Optional[str]) -> str:
    """Same (account, counterpart) pair always yields the same identifier."""
    return str(uuid5(CONVERSATION_NAMESPACE, f"{account_id}:{counterpart_id or ''}"))


def _utcnow() -> datetime:
    return datetime.now(UTC)


class EventType(str, Enum):
    """Webhook event variants."""
    MESSAGE = "message"
    REACTION = "reaction"
    READ = "read"
    POSTBACK = "postback"
    COMMENT = "comment"
    MENTION = "mention"
    STORY_INSIGHTS = "story_insights"
    COMPLIANCE = "compliance"
    UNKNOWN = "unknown"


class MessageKind(str, Enum):
    """Sub-classification of received messages."""
    TEXT = "text"
    QUICK_REPLY = "quick_reply"
    REFERRAL = "referral"
    STORY_REPLY = "story_reply"
    IMAGE = "image"
    VIDEO = "video"
    AUDIO = "audio"
    STICKER = "sticker"
    STORY_MENTION = "story_mention"
    SHARE = "share"
    ATTACHMENT = "attachment"


@dataclass
class WebhookEvent:
    """Common fields carried by every forwarded event."""

    event_type: ClassVar[EventType] = EventType.UNKNOWN

    account_id: str = ""
    conversation_id: str = ""
    platform_timestamp: Optional[int] = None
    received_at: datetime = field(default_factory=_utcnow)

    @property
    def event_tag(self) -> str:
        return self.event_type.value

    def data(self) -> dict[str, Any]:
        """Variant-specific fields."""
        return {}

    def to_payload(self) -> dict[str, Any]:
        """Body for the downstream generic events endpoint."""
        return {
            "event_type": self.event_tag,
            "instagram_account_id": self.account_id,
            "conversation_id": self.conversation_id,
            "data": self.data(),
            "platform_timestamp": self.platform_timestamp,
            "received_at": self.received_at.isoformat(),
        }


@dataclass
class MessageEvent(WebhookEvent):
    """A direct message received (or echoed) on the account."""

    event_type: ClassVar[EventType] = EventType.MESSAGE

    sender_id: str = ""
    recipient_id: str = ""
    message_id: Optional[str] = None
    kind: MessageKind = MessageKind.TEXT
    text: Optional[str] = None
    attachments: list[dict[str, Any]] = field(default_factory=list)
    quick_reply_payload: Optional[str] = None
    referral: Optional[dict[str, Any]] = None
    reply_to: Optional[dict[str, Any]] = None
    is_echo: bool = False
    is_deleted: bool = False
    is_unsupported: bool = False

    def data(self) -> dict[str, Any]:
        return {
            "id": self.message_id,
            "text": self.text,
            "attachments": self.attachments,
            "timestamp": self.platform_timestamp,
            "type": self.kind.value,
            "quick_reply_payload": self.quick_reply_payload,
            "referral": self.referral,
            "reply_to": self.reply_to,
        }

    def to_payload(self) -> dict[str, Any]:
        """Body for the downstream messages endpoint."""
        return {
            "instagram_account_id": self.account_id,
            "sender_id": self.sender_id,
            "recipient_id": self.recipient_id,
            "conversation_id": self.conversation_id,
            "message": self.data(),
            "is_echo": self.is_echo,
            "is_deleted": self.is_deleted,
            "is_unsupported": self.is_unsupported,
            "webhook_event_type": self.event_tag,
            "webhook_received_at": self.received_at.isoformat(),
            "instagram_webhook_time": self.platform_timestamp,
        }


@dataclass
class ReactionEvent(WebhookEvent):
    """A reaction added to or removed from a message."""

    event_type: ClassVar[EventType] = EventType.REACTION

    sender_id: str = ""
    message_id: Optional[str] = None
    action: Optional[str] = None  # react | unreact
    reaction: Optional[str] = None
    emoji: Optional[str] = None

    def data(self) -> dict[str, Any]:
        return {
            "sender_id": self.sender_id,
            "message_id": self.message_id,
            "action": self.action,
            "reaction": self.reaction,
            "emoji": self.emoji,
        }


@dataclass
class ReadEvent(WebhookEvent):
    """A read receipt."""

    event_type: ClassVar[EventType] = EventType.READ

    sender_id: str = ""
    message_id: Optional[str] = None

    def data(self) -> dict[str, Any]:
        return {"sender_id": self.sender_id, "message_id": self.message_id}


@dataclass
class PostbackEvent(WebhookEvent):
    """Icebreaker or button postback."""

    event_type: ClassVar[EventType] = EventType.POSTBACK

    sender_id: str = ""
    message_id: Optional[str] = None
    title: Optional[str] = None
    payload: Optional[str] = None

    def data(self) -> dict[str, Any]:
        return {
            "sender_id": self.sender_id,
            "message_id": self.message_id,
            "title": self.title,
            "payload": self.payload,
        }


@dataclass
class CommentEvent(WebhookEvent):
    """A comment (or live comment) on the account's media."""

    event_type: ClassVar[EventType] = EventType.COMMENT

    field_name: str = "comments"
    comment_id: Optional[str] = None
    media_id: Optional[str] = None
    from_id: Optional[str] = None
    from_username: Optional[str] = None
    text: Optional[str] = None
    parent_comment_id: Optional[str] = None

    def data(self) -> dict[str, Any]:
        return {
            "comment_id": self.comment_id,
            "media_id": self.media_id,
            "from_id": self.from_id,
            "from_username": self.from_username,
            "text": self.text,
            "parent_comment_id": self.parent_comment_id,
        }

    def to_payload(self) -> dict[str, Any]:
        """Body for the downstream comments endpoint."""
        return {
            "instagram_account_id": self.account_id,
            "conversation_id": self.conversation_id,
            **self.data(),
            "webhook_event_type": "live_comment" if self.field_name == "live_comments" else "comment",
            "webhook_received_at": self.received_at.isoformat(),
            "instagram_webhook_time": self.platform_timestamp,
        }


@dataclass
class MentionEvent(WebhookEvent):
    """The account was mentioned in a caption or comment."""

    event_type: ClassVar[EventType] = EventType.MENTION

    media_id: Optional[str] = None
    comment_id: Optional[str] = None

    def data(self) -> dict[str, Any]:
        return {"media_id": self.media_id, "comment_id": self.comment_id}


@dataclass
class StoryInsightEvent(WebhookEvent):
    """Metrics for an expired story."""

    event_type: ClassVar[EventType] = EventType.STORY_INSIGHTS

    media_id: Optional[str] = None
    metrics: dict[str, Any] = field(default_factory=dict)

    def data(self) -> dict[str, Any]:
        return {"media_id": self.media_id, **self.metrics}


@dataclass
class UnknownFieldEvent(WebhookEvent):
    """Anything unrecognised, forwarded with its raw field name."""

    event_type: ClassVar[EventType] = EventType.UNKNOWN

    field_name: str = ""
    value: Any = None

    @property
    def event_tag(self) -> str:
        return f"unknown_{self.field_name}" if self.field_name else self.event_type.value

    def data(self) -> dict[str, Any]:
        return {"field": self.field_name, "value": self.value}


@dataclass
class ComplianceEvent(WebhookEvent):
    """Deauthorize or data-deletion request received from Meta."""

    event_type: ClassVar[EventType] = EventType.COMPLIANCE

    action: str = "deauthorize"  # deauthorize | data_deletion
    user_id: Optional[str] = None
    confirmation_code: Optional[str] = None

    @property
    def event_tag(self) -> str:
        return self.action

    def data(self) -> dict[str, Any]:
        return {
            "user_id": self.user_id,
            "confirmation_code": self.confirmation_code,
        }
