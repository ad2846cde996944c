"""
Build outgoing webhook payloads for message and conversation changes and
queue their delivery to the channel's ``webhook_url``.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Iterable, Optional

from sqlalchemy.orm import Session

from app.constants.inbox import (
    ConversationPriority,
    ConversationStatus,
    MessageStatus,
    MessageType,
)
from app.infra.celery_app import QUEUE_LOW
from app.models.conversation import Conversation
from app.models.inbox import Inbox
from app.models.message import Message

logger = logging.getLogger(__name__)

MESSAGE_CREATED = "message_created"
MESSAGE_UPDATED = "message_updated"
CONVERSATION_CREATED = "conversation_created"
CONVERSATION_UPDATED = "conversation_updated"

# Attributes whose change is worth a message_updated notification
TRACKED_MESSAGE_ATTRIBUTES = ("status", "content", "source_id")


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


def _enum_name(enum_cls, value: Any) -> Optional[str]:
    if value is None:
        return None
    return enum_cls(value).name.lower()


class WebhookDispatcher:
    """Queue ``webhook_task`` jobs for the events the tenant subscribes to."""

    def __init__(self, db: Session) -> None:
        self.db = db

    # --- payloads ---------------------------------------------------------

    def prepare_message_payload(
        self, message: Message, event: str = MESSAGE_CREATED
    ) -> dict[str, Any]:
        conversation = message.conversation
        contact = conversation.contact if conversation is not None else None
        attachments = [a.to_payload() for a in message.attachments]
        content_type = message.content_type
        if not message.content and attachments:
            content_type = attachments[0]["file_type"]

        payload: dict[str, Any] = {
            "event": event,
            "id": str(message.id),
            "content": message.content,
            "content_type": content_type,
            "message_type": _enum_name(MessageType, message.message_type),
            "status": _enum_name(MessageStatus, message.status),
            "source_id": message.source_id,
            "private": bool(message.private),
            "created_at": _iso(message.created_at),
            "attachments": attachments,
            "account": {"id": str(message.account_id)},
        }
        if contact is not None:
            payload["contact"] = {
                "id": str(contact.id),
                "name": contact.name,
                "email": contact.email,
                "phone_number": contact.phone_number,
                "identifier_instagram": contact.identifier_instagram,
                "identifier_facebook": contact.identifier_facebook,
                "avatar_url": contact.avatar_url,
            }
        if conversation is not None:
            payload["conversation"] = {
                "id": str(conversation.id),
                "display_id": conversation.display_id,
                "status": _enum_name(ConversationStatus, conversation.status),
            }
        return payload

    def prepare_conversation_payload(
        self, conversation: Conversation, event: str = CONVERSATION_CREATED
    ) -> dict[str, Any]:
        contact = conversation.contact
        payload: dict[str, Any] = {
            "event": event,
            "id": str(conversation.id),
            "display_id": conversation.display_id,
            "status": _enum_name(ConversationStatus, conversation.status),
            "priority": _enum_name(ConversationPriority, conversation.priority),
            "last_activity_at": _iso(conversation.last_activity_at),
            "created_at": _iso(conversation.created_at),
            "account": {"id": str(conversation.account_id)},
        }
        if contact is not None:
            payload["contact"] = {"id": str(contact.id), "name": contact.name}
        return payload

    # --- dispatch ---------------------------------------------------------

    def dispatch_message_created(self, message: Message) -> bool:
        payload = self.prepare_message_payload(message, MESSAGE_CREATED)
        return self._dispatch(self._inbox_for(message.inbox_id), payload)

    def dispatch_message_updated(
        self, message: Message, changed_attributes: Iterable[str] = ()
    ) -> bool:
        """Notify a message change. Untracked-only changes are not sent."""
        changed = [a for a in changed_attributes if a in TRACKED_MESSAGE_ATTRIBUTES]
        if not changed:
            return False
        payload = self.prepare_message_payload(message, MESSAGE_UPDATED)
        payload["changed_attributes"] = changed
        # Each revision is a distinct delivery
        revision = f"{message.id}:{message.status}:{message.source_id or ''}"
        return self._dispatch(
            self._inbox_for(message.inbox_id), payload, resource_id=revision
        )

    def dispatch_conversation_created(self, conversation: Conversation) -> bool:
        payload = self.prepare_conversation_payload(conversation, CONVERSATION_CREATED)
        return self._dispatch(self._inbox_for(conversation.inbox_id), payload)

    def dispatch_conversation_updated(self, conversation: Conversation) -> bool:
        payload = self.prepare_conversation_payload(conversation, CONVERSATION_UPDATED)
        revision = f"{conversation.id}:{conversation.status}"
        return self._dispatch(
            self._inbox_for(conversation.inbox_id), payload, resource_id=revision
        )

    # --- internals --------------------------------------------------------

    def _inbox_for(self, inbox_id) -> Optional[Inbox]:
        return self.db.query(Inbox).filter(Inbox.id == inbox_id).first()

    def _dispatch(
        self,
        inbox: Optional[Inbox],
        payload: dict[str, Any],
        resource_id: Optional[str] = None,
    ) -> bool:
        channel = inbox.channel if inbox is not None else None
        url = channel.webhook_url if channel is not None else None
        if not url:
            return False
        if "inbox" not in payload:
            payload["inbox"] = {"id": str(inbox.id), "name": inbox.name}
        self._enqueue(url, payload, resource_id)
        return True

    def _enqueue(
        self, url: str, payload: dict[str, Any], resource_id: Optional[str]
    ) -> None:
        # Imported here: the task module imports this service's callers
        from app.tasks.webhook_task import webhook_task

        webhook_task.apply_async(
            kwargs={
                "url": url,
                "payload": payload,
                "event": payload["event"],
                "resource_id": resource_id,
            },
            queue=QUEUE_LOW,
        )
        logger.debug(
            "Queued webhook %s for inbox %s",
            payload["event"],
            payload["inbox"]["id"],
        )
