"""Contact model: a tenant-scoped person reachable on one or more platforms."""

from __future__ import annotations

import uuid

from sqlalchemy import Column, String, UniqueConstraint, Uuid

from app.db import Base, JSONType
from app.models.mixins import TimestampMixin


class Contact(Base, TimestampMixin):
    """
    Platform identifiers are first-write-wins: once set they are never
    overwritten, only missing ones are filled in.
    """

    __tablename__ = "contacts"

    __table_args__ = (
        UniqueConstraint(
            "account_id",
            "identifier_instagram",
            name="uq_contacts_account_identifier_instagram",
        ),
        UniqueConstraint(
            "account_id",
            "identifier_facebook",
            name="uq_contacts_account_identifier_facebook",
        ),
    )

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    account_id = Column(Uuid(as_uuid=True), nullable=False, index=True)
    name = Column(String(255), nullable=True)
    email = Column(String(255), nullable=True, index=True)
    phone_number = Column(String(32), nullable=True, index=True)
    identifier_facebook = Column(String(255), nullable=True)
    identifier_instagram = Column(String(255), nullable=True)
    avatar_url = Column(String(2048), nullable=True)
    additional_attributes = Column(JSONType, nullable=False, default=dict)
