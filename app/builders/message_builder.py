"""
Persist a normalized inbound (or echoed) message with its conversation.

Runs inside the per-thread lock held by the caller; the conversation
``display_id`` race across threads of one tenant is handled with a savepoint
retry on the (account_id, display_id) unique constraint.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.constants.inbox import (
    ATTACHMENT_TYPE_MAP,
    MESSAGE_CONTENT_TYPE_TEXT,
    UNSUPPORTED_ATTACHMENT_TYPES,
    AttachmentFileType,
    ConversationPriority,
    ConversationStatus,
    MessageStatus,
    MessageType,
)
from app.models.attachment import Attachment
from app.models.contact_inbox import ContactInbox
from app.models.conversation import Conversation
from app.models.inbox import Inbox
from app.models.message import Message
from app.schemas.events import CanonicalEvent, EventAttachment

logger = logging.getLogger(__name__)

DISPLAY_ID_RETRIES = 3


@dataclass
class BuildResult:
    message: Message
    conversation: Conversation
    conversation_created: bool = False
    message_created: bool = True


def has_storable_content(event: CanonicalEvent) -> bool:
    """False when there is no text and every attachment is of an unsupported type."""
    if event.text:
        return True
    return any(
        a.type not in UNSUPPORTED_ATTACHMENT_TYPES for a in event.attachments
    )


class MessageBuilder:
    """
    Build a Message from a ``CanonicalEvent`` for an existing contact inbox.

    Echoes (messages the tenant sent, reflected back by the platform) become
    outgoing messages without a sender. If an outgoing message with the same
    content is still waiting for its ``source_id`` it is completed instead of
    duplicated, unless ``match_pending`` is off (echoes of replies sent from
    another app).
    """

    def __init__(
        self,
        db: Session,
        inbox: Inbox,
        contact_inbox: ContactInbox,
        event: CanonicalEvent,
        match_pending: bool = True,
    ) -> None:
        self.db = db
        self.inbox = inbox
        self.contact_inbox = contact_inbox
        self.event = event
        self.match_pending = match_pending

    def perform(self) -> Optional[BuildResult]:
        if self.event.message_id and self._message_exists():
            logger.info(
                "Message with source_id %s already exists in inbox %s; skipping",
                self.event.message_id,
                self.inbox.id,
            )
            return None
        if not has_storable_content(self.event):
            logger.info(
                "Message %s has no supported content; skipping", self.event.message_id
            )
            return None

        try:
            conversation, created = self._find_or_create_conversation()
            if self.event.is_echo and self.match_pending and not created:
                pending = self._pending_outgoing(conversation)
                if pending is not None:
                    result = self._complete_pending(pending, conversation)
                    self.db.commit()
                    return result
            message = self._build_message(conversation)
            conversation.last_activity_at = message.created_at
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        self.db.refresh(message)
        return BuildResult(
            message=message, conversation=conversation, conversation_created=created
        )

    # --- conversation -----------------------------------------------------

    def _find_or_create_conversation(self) -> tuple[Conversation, bool]:
        conversation = (
            self.db.query(Conversation)
            .filter(
                Conversation.contact_id == self.contact_inbox.contact_id,
                Conversation.inbox_id == self.inbox.id,
            )
            .order_by(Conversation.created_at.desc())
            .first()
        )
        if conversation is not None:
            if conversation.status == ConversationStatus.RESOLVED.value:
                conversation.status = ConversationStatus.OPEN.value
            return conversation, False
        return self._create_conversation(), True

    def _next_display_id(self) -> int:
        current = (
            self.db.query(func.max(Conversation.display_id))
            .filter(Conversation.account_id == self.inbox.account_id)
            .scalar()
        )
        return (current or 0) + 1

    def _create_conversation(self) -> Conversation:
        last_error: Optional[IntegrityError] = None
        for _ in range(DISPLAY_ID_RETRIES):
            conversation = Conversation(
                account_id=self.inbox.account_id,
                inbox_id=self.inbox.id,
                contact_id=self.contact_inbox.contact_id,
                contact_inbox_id=self.contact_inbox.id,
                display_id=self._next_display_id(),
                status=ConversationStatus.OPEN.value,
                priority=ConversationPriority.LOW.value,
                last_activity_at=self._created_at(),
            )
            try:
                with self.db.begin_nested():
                    self.db.add(conversation)
            except IntegrityError as e:
                last_error = e
                logger.info(
                    "display_id collision for account %s; retrying",
                    self.inbox.account_id,
                )
                continue
            return conversation
        raise last_error  # type: ignore[misc]

    # --- message ----------------------------------------------------------

    def _message_exists(self) -> bool:
        return (
            self.db.query(Message.id)
            .filter(
                Message.inbox_id == self.inbox.id,
                Message.source_id == self.event.message_id,
            )
            .first()
            is not None
        )

    def _created_at(self) -> datetime:
        return self.event.timestamp or datetime.now(timezone.utc)

    def _content_attributes(self) -> dict:
        attributes: dict = {}
        if self.event.reply_to_mid:
            attributes["in_reply_to_external_id"] = self.event.reply_to_mid
        return attributes

    def _pending_outgoing(self, conversation: Conversation) -> Optional[Message]:
        if not self.event.text:
            return None
        return (
            self.db.query(Message)
            .filter(
                Message.conversation_id == conversation.id,
                Message.message_type == MessageType.OUTGOING.value,
                Message.source_id.is_(None),
                Message.content == self.event.text,
            )
            .order_by(Message.created_at.desc())
            .first()
        )

    def _complete_pending(
        self, message: Message, conversation: Conversation
    ) -> BuildResult:
        logger.info(
            "Echo %s completes pending outgoing message %s",
            self.event.message_id,
            message.id,
        )
        message.source_id = self.event.message_id
        if message.status < MessageStatus.SENT.value:
            message.status = MessageStatus.SENT.value
        message.external_error = None
        return BuildResult(
            message=message, conversation=conversation, message_created=False
        )

    def _build_message(self, conversation: Conversation) -> Message:
        is_echo = self.event.is_echo
        message = Message(
            account_id=self.inbox.account_id,
            inbox_id=self.inbox.id,
            conversation_id=conversation.id,
            sender_contact_id=None if is_echo else self.contact_inbox.contact_id,
            message_type=(
                MessageType.OUTGOING.value if is_echo else MessageType.INCOMING.value
            ),
            content_type=MESSAGE_CONTENT_TYPE_TEXT,
            content=self.event.text,
            source_id=self.event.message_id,
            status=MessageStatus.DELIVERED.value,
            content_attributes=self._content_attributes(),
            created_at=self._created_at(),
        )
        for raw in self.event.attachments:
            if raw.type in UNSUPPORTED_ATTACHMENT_TYPES:
                continue
            message.attachments.append(self._build_attachment(raw))
        self.db.add(message)
        self.db.flush()
        return message

    def _build_attachment(self, raw: EventAttachment) -> Attachment:
        file_type = ATTACHMENT_TYPE_MAP.get(raw.type, AttachmentFileType.FILE)
        attachment = Attachment(
            account_id=self.inbox.account_id,
            file_type=file_type.value,
            external_url=raw.url,
            meta={
                k: v
                for k, v in {
                    "media_id": raw.media_id,
                    "mime_type": raw.mime_type,
                }.items()
                if v
            },
        )
        if file_type == AttachmentFileType.LOCATION:
            attachment.coordinates_lat = raw.latitude
            attachment.coordinates_long = raw.longitude
            attachment.fallback_title = raw.title
        elif file_type == AttachmentFileType.FALLBACK:
            attachment.fallback_title = raw.title
        return attachment
