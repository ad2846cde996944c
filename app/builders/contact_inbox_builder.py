"""
Race-safe creation of contacts and contact-inbox bindings.

Strategy: insert, and on a uniqueness conflict re-select the row the other
writer committed. PostgreSQL and SQLite use the native
``INSERT ... ON CONFLICT DO NOTHING``; other dialects fall back to a
savepoint and catch ``IntegrityError``. No application-level lock is needed.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from sqlalchemy import insert
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.constants.inbox import ChannelType
from app.models.channel import Channel
from app.models.contact import Contact
from app.models.contact_inbox import ContactInbox
from app.models.inbox import Inbox

logger = logging.getLogger(__name__)

UNKNOWN_CONTACT_NAME = "Unknown Contact"

PLATFORM_IDENTIFIERS: dict[ChannelType, str] = {
    ChannelType.INSTAGRAM: "identifier_instagram",
    ChannelType.FACEBOOK: "identifier_facebook",
}

# Instagram and Facebook identify the same person across Meta platforms
CROSS_PLATFORM: dict[ChannelType, ChannelType] = {
    ChannelType.INSTAGRAM: ChannelType.FACEBOOK,
    ChannelType.FACEBOOK: ChannelType.INSTAGRAM,
}

# Filled in on an existing contact only while still empty
ADDITIVE_CONTACT_FIELDS = (
    "identifier_instagram",
    "identifier_facebook",
    "email",
    "phone_number",
    "avatar_url",
)

_NATIVE_INSERTS = {"postgresql": pg_insert, "sqlite": sqlite_insert}


class ContactInboxBuilder:
    """Return the (inbox, source_id) binding for a contact, creating it at most once."""

    def __init__(
        self, db: Session, contact: Contact, inbox: Inbox, source_id: Optional[str]
    ) -> None:
        self.db = db
        self.contact = contact
        self.inbox = inbox
        self.source_id = source_id

    def perform(self) -> ContactInbox:
        if not self.source_id:
            raise ValueError("source_id is required to build a contact inbox")

        existing = self._find()
        if existing is not None:
            return existing

        self.db.flush()
        values = {
            "contact_id": self.contact.id,
            "inbox_id": self.inbox.id,
            "source_id": self.source_id,
        }
        native_insert = _NATIVE_INSERTS.get(self.db.get_bind().dialect.name)
        if native_insert is not None:
            stmt = native_insert(ContactInbox).values(**values)
            self.db.execute(
                stmt.on_conflict_do_nothing(index_elements=["inbox_id", "source_id"])
            )
        else:
            try:
                with self.db.begin_nested():
                    self.db.execute(insert(ContactInbox).values(**values))
            except IntegrityError:
                logger.info(
                    "Contact inbox for source_id %s created concurrently; re-reading",
                    self.source_id,
                )

        contact_inbox = self._find()
        if contact_inbox is None:
            raise RuntimeError(
                f"Contact inbox for source_id {self.source_id} vanished after insert"
            )
        return contact_inbox

    def _find(self) -> Optional[ContactInbox]:
        return (
            self.db.query(ContactInbox)
            .filter(
                ContactInbox.inbox_id == self.inbox.id,
                ContactInbox.source_id == self.source_id,
            )
            .first()
        )


class ContactInboxWithContactBuilder:
    """
    Resolve or create the contact, then bind it to the inbox.

    Contact resolution order (first match wins), always scoped to the inbox's
    tenant:

    1. identifier of the inbound platform
    2. cross-platform: the other Meta identifier (also accepted under
       ``linked_identifiers``), or a contact already bound to the same
       ``source_id`` through an inbox of the other Meta channel type
    3. email
    4. phone number

    A found contact only gains identifiers it does not have yet.
    """

    def __init__(
        self,
        db: Session,
        inbox: Inbox,
        contact_attributes: dict[str, Any],
        source_id: Optional[str] = None,
        platform: Optional[ChannelType] = None,
    ) -> None:
        self.db = db
        self.inbox = inbox
        self.contact_attributes = contact_attributes
        self.source_id = source_id
        self.platform = platform

    @property
    def account_id(self):
        return self.inbox.account_id

    @property
    def channel_type(self) -> ChannelType:
        """Platform of the inbound event; Instagram may arrive through a Facebook page."""
        if self.platform is not None:
            return self.platform
        return ChannelType(self.inbox.channel.channel_type)

    def perform(self) -> ContactInbox:
        if self.source_id:
            existing = (
                self.db.query(ContactInbox)
                .filter(
                    ContactInbox.inbox_id == self.inbox.id,
                    ContactInbox.source_id == self.source_id,
                )
                .first()
            )
            if existing is not None:
                return existing

        try:
            contact = self._find_contact()
            if contact is not None:
                self._add_missing_identifiers(contact)
            else:
                contact = self._create_contact()
            contact_inbox = ContactInboxBuilder(
                self.db, contact, self.inbox, self.source_id
            ).perform()
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        return contact_inbox

    # --- resolution -------------------------------------------------------

    def _by_attribute(self, column: str, value: Any) -> Optional[Contact]:
        if not value:
            return None
        return (
            self.db.query(Contact)
            .filter(
                Contact.account_id == self.account_id,
                getattr(Contact, column) == value,
            )
            .first()
        )

    def _find_cross_platform(self) -> Optional[Contact]:
        other = CROSS_PLATFORM.get(self.channel_type)
        if other is None:
            return None
        column = PLATFORM_IDENTIFIERS[other]
        linked = self.contact_attributes.get("linked_identifiers") or {}
        contact = self._by_attribute(
            column, linked.get(column) or self.contact_attributes.get(column)
        )
        if contact is not None or not self.source_id:
            return contact
        bound = (
            self.db.query(ContactInbox)
            .join(Inbox, ContactInbox.inbox_id == Inbox.id)
            .join(Channel, Inbox.channel_id == Channel.id)
            .filter(
                ContactInbox.source_id == self.source_id,
                Inbox.account_id == self.account_id,
                Channel.channel_type == other.value,
            )
            .first()
        )
        return bound.contact if bound is not None else None

    def _find_contact(self) -> Optional[Contact]:
        platform_column = PLATFORM_IDENTIFIERS.get(self.channel_type)
        if platform_column:
            contact = self._by_attribute(
                platform_column, self.contact_attributes.get(platform_column)
            )
            if contact is not None:
                return contact

        contact = self._find_cross_platform()
        if contact is not None:
            logger.info(
                "Matched contact %s across platforms for source_id %s",
                contact.id,
                self.source_id,
            )
            return contact

        return self._by_attribute(
            "email", self.contact_attributes.get("email")
        ) or self._by_attribute(
            "phone_number", self.contact_attributes.get("phone_number")
        )

    def _add_missing_identifiers(self, contact: Contact) -> None:
        for column in ADDITIVE_CONTACT_FIELDS:
            value = self.contact_attributes.get(column)
            if value and not getattr(contact, column):
                setattr(contact, column, value)
        if not contact.name and self._contact_name() != UNKNOWN_CONTACT_NAME:
            contact.name = self._contact_name()

    def _contact_name(self) -> str:
        return (
            self.contact_attributes.get("name")
            or self.contact_attributes.get("username")
            or UNKNOWN_CONTACT_NAME
        )

    def _create_contact(self) -> Contact:
        contact = Contact(
            account_id=self.account_id,
            name=self._contact_name(),
            email=self.contact_attributes.get("email"),
            phone_number=self.contact_attributes.get("phone_number"),
            identifier_facebook=self.contact_attributes.get("identifier_facebook"),
            identifier_instagram=self.contact_attributes.get("identifier_instagram"),
            avatar_url=self.contact_attributes.get("avatar_url"),
            additional_attributes=self.contact_attributes.get(
                "additional_attributes"
            )
            or {},
        )
        try:
            with self.db.begin_nested():
                self.db.add(contact)
        except IntegrityError:
            # Another worker created the contact first; use theirs
            logger.info("Contact created concurrently; re-resolving")
            existing = self._find_contact()
            if existing is None:
                raise
            self._add_missing_identifiers(existing)
            return existing
        return contact
