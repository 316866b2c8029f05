"""
Webhook event classification and routing.

Decodes a verified Instagram webhook batch into ``WebhookEvent`` objects and
hands each one to the forwarder. Nothing in here may raise back to the
webhook endpoint: a malformed entry is logged and skipped, and the rest of
the batch is still processed.
"""

import json
import logging
from datetime import UTC, datetime
from typing import Any, Protocol

from core.domain.events import (
    CommentEvent,
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
from core.security.webhook_signature import WebhookSignatureVerifier

logger = logging.getLogger(__name__)

# Attachment type -> message kind
_ATTACHMENT_KINDS = {
    "image": MessageKind.IMAGE,
    "video": MessageKind.VIDEO,
    "audio": MessageKind.AUDIO,
    "like_heart": MessageKind.STICKER,
    "sticker": MessageKind.STICKER,
    "animated_image": MessageKind.STICKER,
    "story_mention": MessageKind.STORY_MENTION,
    "share": MessageKind.SHARE,
}


class EventSink(Protocol):
    def submit(self, event: WebhookEvent) -> bool: ...


def _as_dict(value: Any) -> dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _id_of(value: Any) -> str | None:
    if isinstance(value, dict):
        raw = value.get("id")
        return str(raw) if raw is not None else None
    if isinstance(value, (str, int)):
        return str(value)
    return None


def _timestamp(value: Any) -> int | None:
    try:
        return int(value) if value is not None else None
    except (TypeError, ValueError):
        return None


def classify_message(message: dict[str, Any]) -> MessageKind:
    """First match wins: quick reply, referral, story reply, attachment, text."""
    if message.get("quick_reply"):
        return MessageKind.QUICK_REPLY
    if message.get("referral"):
        return MessageKind.REFERRAL
    if _as_dict(message.get("reply_to")).get("story"):
        return MessageKind.STORY_REPLY
    attachments = message.get("attachments")
    if isinstance(attachments, list) and attachments:
        first = _as_dict(attachments[0])
        return _ATTACHMENT_KINDS.get(str(first.get("type", "")).lower(), MessageKind.ATTACHMENT)
    return MessageKind.TEXT


class WebhookEventRouter:
    """Parses webhook batches and submits the resulting events."""

    def __init__(self, sink: EventSink, verifier: WebhookSignatureVerifier | None = None):
        self.sink = sink
        self.verifier = verifier

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    async def handle_delivery(self, raw_body: bytes, signature_header: str | None) -> int:
        """
        Verify and route one webhook delivery.

        Runs after the acknowledgment has been sent. Returns the number of
        events submitted; an invalid signature submits nothing.
        """
        if self.verifier is None or not self.verifier.verify(raw_body, signature_header):
            logger.warning("Webhook rejected: invalid signature")
            return 0

        try:
            body = json.loads(raw_body)
        except (ValueError, UnicodeDecodeError):
            logger.warning("Webhook rejected: body is not valid JSON")
            return 0

        return self.route(body)

    def route(self, body: Any, received_at: datetime | None = None) -> int:
        """Classify every entry in *body* and submit the events."""
        submitted = 0
        for event in self.parse(body, received_at):
            try:
                if self.sink.submit(event):
                    submitted += 1
            except Exception as e:
                logger.error(
                    "Failed to forward webhook event: %s",
                    e,
                    extra={"event_type": event.event_tag, "account_id": event.account_id},
                )
        return submitted

    def parse(self, body: Any, received_at: datetime | None = None) -> list[WebhookEvent]:
        """Decode a webhook batch; malformed entries are skipped."""
        received_at = received_at or datetime.now(UTC)
        body = _as_dict(body)
        if body.get("object") not in (None, "instagram", "page"):
            logger.info("Ignoring webhook for object %r", body.get("object"))
            return []

        entries = body.get("entry")
        if not isinstance(entries, list):
            return []

        events: list[WebhookEvent] = []
        for entry in entries:
            try:
                events.extend(self._parse_entry(_as_dict(entry), received_at))
            except Exception as e:
                logger.error("Skipping malformed webhook entry: %s", e)
        return events

    # ------------------------------------------------------------------
    # Entry parsing
    # ------------------------------------------------------------------

    def _parse_entry(self, entry: dict[str, Any], received_at: datetime) -> list[WebhookEvent]:
        account_id = _id_of(entry.get("id")) or ""
        entry_time = _timestamp(entry.get("time"))
        events: list[WebhookEvent] = []

        for item in entry.get("messaging") or []:
            event = self._parse_messaging(_as_dict(item), account_id, received_at)
            if event is not None:
                events.append(event)

        for change in entry.get("changes") or []:
            event = self._parse_change(_as_dict(change), account_id, entry_time, received_at)
            if event is not None:
                events.append(event)

        return events

    def _parse_messaging(
        self, item: dict[str, Any], entry_account_id: str, received_at: datetime
    ) -> WebhookEvent | None:
        sender_id = _id_of(item.get("sender")) or ""
        recipient_id = _id_of(item.get("recipient")) or ""
        # Test deliveries use entry id "0"; the recipient is the account then
        account_id = (
            entry_account_id if entry_account_id and entry_account_id != "0" else recipient_id
        ) or "unknown_account"
        counterpart = recipient_id if sender_id == account_id else sender_id
        common = {
            "account_id": account_id,
            "conversation_id": conversation_id_for(account_id, counterpart),
            "platform_timestamp": _timestamp(item.get("timestamp")),
            "received_at": received_at,
        }

        if isinstance(item.get("message"), dict):
            return self._message_event(item["message"], sender_id, recipient_id, common)

        if isinstance(item.get("reaction"), dict):
            reaction = item["reaction"]
            return ReactionEvent(
                **common,
                sender_id=sender_id,
                message_id=reaction.get("mid"),
                action=reaction.get("action"),
                reaction=reaction.get("reaction"),
                emoji=reaction.get("emoji"),
            )

        if isinstance(item.get("read"), dict):
            return ReadEvent(**common, sender_id=sender_id, message_id=item["read"].get("mid"))

        if isinstance(item.get("postback"), dict):
            postback = item["postback"]
            return PostbackEvent(
                **common,
                sender_id=sender_id,
                message_id=postback.get("mid"),
                title=postback.get("title"),
                payload=postback.get("payload"),
            )

        known = {"sender", "recipient", "timestamp"}
        field_name = next((k for k in item if k not in known), "messaging")
        return UnknownFieldEvent(**common, field_name=field_name, value=item.get(field_name, item))

    def _message_event(
        self,
        message: dict[str, Any],
        sender_id: str,
        recipient_id: str,
        common: dict[str, Any],
    ) -> MessageEvent:
        attachments = [a for a in message.get("attachments") or [] if isinstance(a, dict)]
        quick_reply = _as_dict(message.get("quick_reply"))
        return MessageEvent(
            **common,
            sender_id=sender_id,
            recipient_id=recipient_id,
            message_id=message.get("mid"),
            kind=classify_message(message),
            text=message.get("text"),
            attachments=attachments,
            quick_reply_payload=quick_reply.get("payload"),
            referral=message.get("referral") if isinstance(message.get("referral"), dict) else None,
            reply_to=message.get("reply_to") if isinstance(message.get("reply_to"), dict) else None,
            is_echo=bool(message.get("is_echo") or message.get("is_self")),
            is_deleted=bool(message.get("is_deleted")),
            is_unsupported=bool(message.get("is_unsupported")),
        )

    def _parse_change(
        self,
        change: dict[str, Any],
        entry_account_id: str,
        entry_time: int | None,
        received_at: datetime,
    ) -> WebhookEvent | None:
        field_name = str(change.get("field") or "")
        value = _as_dict(change.get("value"))

        # Dashboard test deliveries send messages as a change
        if field_name == "messages" and isinstance(value.get("message"), dict):
            return self._parse_messaging(value, entry_account_id, received_at)

        account_id = entry_account_id or _id_of(value.get("recipient")) or "unknown_account"
        timestamp = _timestamp(value.get("timestamp")) or entry_time

        if field_name in ("comments", "live_comments"):
            author = _as_dict(value.get("from"))
            from_id = _id_of(author)
            return CommentEvent(
                account_id=account_id,
                conversation_id=conversation_id_for(account_id, from_id),
                platform_timestamp=timestamp,
                received_at=received_at,
                field_name=field_name,
                comment_id=_id_of(value.get("id")),
                media_id=_id_of(value.get("media")),
                from_id=from_id,
                from_username=author.get("username"),
                text=value.get("text"),
                parent_comment_id=_id_of(value.get("parent_id")),
            )

        common = {
            "account_id": account_id,
            "conversation_id": conversation_id_for(account_id, None),
            "platform_timestamp": timestamp,
            "received_at": received_at,
        }

        if field_name == "mentions":
            return MentionEvent(
                **common,
                media_id=_id_of(value.get("media_id")),
                comment_id=_id_of(value.get("comment_id")),
            )

        if field_name == "story_insights":
            metrics = {k: v for k, v in value.items() if k != "media_id"}
            return StoryInsightEvent(**common, media_id=_id_of(value.get("media_id")), metrics=metrics)

        logger.info("Unknown webhook field %r forwarded as-is", field_name)
        return UnknownFieldEvent(**common, field_name=field_name, value=change.get("value"))
