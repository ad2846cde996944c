"""Inbox model: tenant-scoped mailbox bound 1:1 to a channel."""

from __future__ import annotations

import uuid

from sqlalchemy import Column, ForeignKey, String, Uuid
from sqlalchemy.orm import relationship

from app.db import Base
from app.models.mixins import TimestampMixin


class Inbox(Base, TimestampMixin):
    __tablename__ = "inboxes"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    account_id = Column(Uuid(as_uuid=True), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    channel_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("channels.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )

    channel = relationship("Channel", back_populates="inbox", lazy="joined")
