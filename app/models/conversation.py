"""Conversation model: the thread between a contact and an inbox."""

from __future__ import annotations

import uuid

from sqlalchemy import (
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import relationship

from app.constants.inbox import ConversationPriority, ConversationStatus
from app.db import Base, JSONType
from app.models.mixins import TimestampMixin, utcnow


class Conversation(Base, TimestampMixin):
    __tablename__ = "conversations"

    __table_args__ = (
        UniqueConstraint(
            "account_id", "display_id", name="uq_conversations_account_display_id"
        ),
        Index("ix_conversations_contact_inbox", "contact_id", "inbox_id"),
    )

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    account_id = Column(Uuid(as_uuid=True), nullable=False, index=True)
    inbox_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("inboxes.id", ondelete="CASCADE"),
        nullable=False,
    )
    contact_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("contacts.id", ondelete="CASCADE"),
        nullable=False,
    )
    contact_inbox_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("contact_inboxes.id", ondelete="SET NULL"),
        nullable=True,
    )
    display_id = Column(Integer, nullable=False)
    status = Column(Integer, nullable=False, default=ConversationStatus.OPEN.value)
    priority = Column(Integer, nullable=False, default=ConversationPriority.LOW.value)
    last_activity_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    contact_last_seen_at = Column(DateTime(timezone=True), nullable=True)
    agent_last_seen_at = Column(DateTime(timezone=True), nullable=True)
    additional_attributes = Column(JSONType, nullable=False, default=dict)

    inbox = relationship("Inbox")
    contact = relationship("Contact")
    contact_inbox = relationship("ContactInbox")
    messages = relationship(
        "Message",
        back_populates="conversation",
        order_by="Message.created_at",
    )
