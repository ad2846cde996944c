"""Message model with its delivery status state machine."""

from __future__ import annotations

import uuid

from sqlalchemy import (
    Boolean,
    Column,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import relationship

from app.constants.inbox import (
    MESSAGE_CONTENT_TYPE_TEXT,
    MessageStatus,
    MessageType,
)
from app.db import Base, JSONType
from app.models.mixins import TimestampMixin


class Message(Base, TimestampMixin):
    """
    One message in a conversation.

    ``source_id`` is the platform message id. Incoming messages always carry
    one; outgoing messages get it only after a successful send, which is what
    makes dispatch at-most-once.
    """

    __tablename__ = "messages"

    __table_args__ = (
        UniqueConstraint("inbox_id", "source_id", name="uq_messages_inbox_source"),
        Index("ix_messages_conversation_created", "conversation_id", "created_at"),
    )

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    account_id = Column(Uuid(as_uuid=True), nullable=False, index=True)
    inbox_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("inboxes.id", ondelete="CASCADE"),
        nullable=False,
    )
    conversation_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("conversations.id", ondelete="CASCADE"),
        nullable=False,
    )
    sender_contact_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("contacts.id", ondelete="SET NULL"),
        nullable=True,
    )
    message_type = Column(Integer, nullable=False)
    content_type = Column(
        String(32), nullable=False, default=MESSAGE_CONTENT_TYPE_TEXT
    )
    content = Column(Text, nullable=True)
    source_id = Column(String(255), nullable=True)
    status = Column(Integer, nullable=False, default=MessageStatus.SENT.value)
    private = Column(Boolean, nullable=False, default=False)
    external_error = Column(Text, nullable=True)
    content_attributes = Column(JSONType, nullable=False, default=dict)

    conversation = relationship("Conversation", back_populates="messages")
    sender = relationship("Contact")
    attachments = relationship(
        "Attachment",
        back_populates="message",
        cascade="all, delete-orphan",
    )

    @property
    def is_outgoing(self) -> bool:
        return self.message_type == MessageType.OUTGOING.value

    @property
    def is_incoming(self) -> bool:
        return self.message_type == MessageType.INCOMING.value

    def can_transition_to(self, status: MessageStatus) -> bool:
        """sent -> delivered -> read, and failed only before delivery."""
        current = MessageStatus(self.status)
        if current == MessageStatus.FAILED:
            return False
        if status == MessageStatus.FAILED:
            return current <= MessageStatus.SENT
        return status > current
