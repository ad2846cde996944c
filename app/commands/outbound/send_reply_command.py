"""
Command to send an outgoing message to its platform.

Resolves the adapter by channel type, sends attachments then text, and stores
the platform message id as ``source_id``. A message that already has a
``source_id`` or a sent status is never sent again.
"""

from __future__ import annotations

import logging
from typing import Optional
from uuid import UUID

from sqlalchemy.orm import Session

from app.adapters.base import BasePlatformAdapter
from app.constants.inbox import EXTERNAL_ERROR_MAX_LENGTH, MessageStatus
from app.core.registry import ChannelAdapterRegistry, build_default_registry
from app.models.channel import Channel
from app.models.contact_inbox import ContactInbox
from app.models.conversation import Conversation
from app.models.message import Message
from app.services.webhook_dispatcher import WebhookDispatcher

logger = logging.getLogger(__name__)

SENDABLE_MEDIA_TYPES = ("image", "audio", "video")

# Reached once the platform accepted the message; failed messages may be resent
DISPATCHED_STATUSES = (
    MessageStatus.SENT.value,
    MessageStatus.DELIVERED.value,
    MessageStatus.READ.value,
)


def truncate_error(error: str, limit: int = EXTERNAL_ERROR_MAX_LENGTH) -> str:
    if len(error) <= limit:
        return error
    return error[: limit - 3] + "..."


class SendReplyCommand:
    """
    Command to dispatch one outgoing message exactly once.
    Send failures are recorded on the message and re-raised for the task's
    retry policy.
    """

    def __init__(
        self, db: Session, registry: Optional[ChannelAdapterRegistry] = None
    ) -> None:
        self.db = db
        self.registry = registry or build_default_registry()
        self.webhooks = WebhookDispatcher(db)

    def execute(self, message_id: UUID) -> Optional[Message]:
        """
        Send the message identified by ``message_id``.

        Returns:
            Message: the sent message, or None when the message was skipped.

        Raises:
            Exception: whatever the adapter raised, after the message is
                marked failed.
        """
        message = self.db.query(Message).filter(Message.id == message_id).first()
        skip_reason = self._skip_reason(message)
        if skip_reason:
            logger.info("Not sending message %s: %s", message_id, skip_reason)
            return None

        conversation: Conversation = message.conversation
        channel: Channel = conversation.inbox.channel
        adapter = self.registry.get(channel.type)
        if adapter is None or not adapter.capabilities.send_text:
            logger.info(
                "Channel %s (%s) cannot send; skipping message %s",
                channel.id,
                channel.type.value,
                message_id,
            )
            return None

        contact_inbox = self._contact_inbox(conversation)
        if contact_inbox is None or not contact_inbox.source_id:
            logger.warning(
                "No recipient for conversation %s; skipping message %s",
                conversation.id,
                message_id,
            )
            return None

        # Re-check under a row lock so two dispatchers cannot both send
        message = (
            self.db.query(Message)
            .filter(
                Message.id == message_id,
                Message.source_id.is_(None),
                Message.status.notin_(DISPATCHED_STATUSES),
            )
            .with_for_update()
            .first()
        )
        if message is None:
            logger.info("Message %s was sent concurrently; skipping", message_id)
            return None

        try:
            platform_message_id = self._send(
                adapter, channel, contact_inbox.source_id, message
            )
        except Exception as e:
            message.status = MessageStatus.FAILED.value
            message.external_error = truncate_error(str(e))
            self.db.commit()
            logger.warning("Sending message %s failed: %s", message_id, e)
            self.webhooks.dispatch_message_updated(message, ["status"])
            raise

        if platform_message_id is None:
            logger.warning(
                "Platform returned no id for message %s; marking sent without source_id",
                message_id,
            )
        message.source_id = platform_message_id
        message.status = MessageStatus.SENT.value
        message.external_error = None
        self.db.commit()
        self.db.refresh(message)
        logger.info(
            "Sent message %s via %s as %s",
            message_id,
            channel.type.value,
            platform_message_id,
        )
        self.webhooks.dispatch_message_updated(message, ["status", "source_id"])
        return message

    def _skip_reason(self, message: Optional[Message]) -> Optional[str]:
        if message is None:
            return "message not found"
        if not message.is_outgoing:
            return "not an outgoing message"
        if message.source_id or message.status in DISPATCHED_STATUSES:
            return "already sent"
        if message.private:
            return "private note"
        conversation = message.conversation
        if conversation is None or conversation.inbox is None:
            return "conversation or inbox missing"
        if conversation.inbox.channel is None:
            return "channel missing"
        return None

    def _contact_inbox(self, conversation: Conversation) -> Optional[ContactInbox]:
        if conversation.contact_inbox is not None:
            return conversation.contact_inbox
        return (
            self.db.query(ContactInbox)
            .filter(
                ContactInbox.contact_id == conversation.contact_id,
                ContactInbox.inbox_id == conversation.inbox_id,
            )
            .first()
        )

    def _send(
        self,
        adapter: BasePlatformAdapter,
        channel: Channel,
        recipient_id: str,
        message: Message,
    ) -> Optional[str]:
        """Send attachments, then text. Returns the last platform message id."""
        platform_message_id = None
        if adapter.capabilities.send_attachment:
            for attachment in message.attachments:
                url = attachment.external_url or attachment.file_path
                if not url:
                    continue
                attachment_type = attachment.file_type_name
                if attachment_type not in SENDABLE_MEDIA_TYPES:
                    attachment_type = "file"
                result = adapter.send_attachment(
                    channel, recipient_id, attachment_type, url
                )
                platform_message_id = result.platform_message_id or platform_message_id
        if message.content:
            result = adapter.send_text(channel, recipient_id, message.content)
            platform_message_id = result.platform_message_id or platform_message_id
        return platform_message_id
