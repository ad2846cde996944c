"""ContactInbox model: binds a contact to an inbox through an external thread id."""

from __future__ import annotations

import uuid

from sqlalchemy import Column, ForeignKey, String, UniqueConstraint, Uuid
from sqlalchemy.orm import relationship

from app.db import Base
from app.models.mixins import TimestampMixin


class ContactInbox(Base, TimestampMixin):
    __tablename__ = "contact_inboxes"

    __table_args__ = (
        UniqueConstraint(
            "inbox_id", "source_id", name="uq_contact_inboxes_inbox_source"
        ),
    )

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    contact_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("contacts.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    inbox_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("inboxes.id", ondelete="CASCADE"),
        nullable=False,
    )
    source_id = Column(String(255), nullable=False)

    contact = relationship("Contact")
    inbox = relationship("Inbox")
