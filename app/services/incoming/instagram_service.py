"""Instagram Direct messaging events (messages, echoes, unsends and reads)."""

from __future__ import annotations

import logging
from typing import Any, Optional

from app.channels.normalizer import INSTAGRAM_SUPPORTED_KINDS, normalize_messaging_item
from app.constants.inbox import ChannelType, MessageStatus
from app.core.redis_keys import instagram_lock_key
from app.models.channel import Channel
from app.models.conversation import Conversation
from app.models.inbox import Inbox
from app.models.message import Message
from app.models.mixins import utcnow
from app.schemas.events import CanonicalEvent, EventKind
from app.services.incoming.base import BaseIncomingService

logger = logging.getLogger(__name__)


class InstagramIncomingService(BaseIncomingService):
    channel_type = ChannelType.INSTAGRAM

    def perform(
        self, messaging: dict[str, Any], entry_id: Optional[str] = None
    ) -> Optional[Any]:
        """
        Process one ``messaging`` item of an Instagram webhook entry.

        Raises:
            LockAcquisitionFailure: another worker holds the thread lock.
        """
        event = normalize_messaging_item(
            ChannelType.INSTAGRAM, messaging, entry_id, INSTAGRAM_SUPPORTED_KINDS
        )
        if event is None:
            logger.info("Unsupported Instagram event in entry %s; skipping", entry_id)
            return None
        if not event.sender_id or not event.recipient_id:
            logger.warning("Instagram event without sender or recipient; skipping")
            return None
        if event.kind == EventKind.MESSAGE and not event.message_id:
            logger.warning("Instagram message without mid; skipping")
            return None

        channel = self.channel_service.find_instagram_channel(
            [event.account_external_id, event.entry_id]
        )
        if not self.channel_usable(channel, event):
            return None

        attributes = self.prefetch_contact_attributes(channel, event)
        return self.run_locked(
            self.lock_key(event), lambda: self._handle(channel, event, attributes)
        )

    def lock_key(self, event: CanonicalEvent) -> str:
        return instagram_lock_key(
            event.contact_external_id, event.account_external_id, self.namespace
        )

    def _handle(
        self,
        channel: Channel,
        event: CanonicalEvent,
        attributes: Optional[dict[str, Any]] = None,
    ) -> Optional[Any]:
        inbox = channel.inbox
        if event.kind == EventKind.READ:
            return self._handle_read(inbox, event)
        if event.is_deleted:
            return self.mark_deleted(inbox, event.message_id)
        return self.process_once(
            inbox,
            event.message_id,
            lambda: self._create_message(channel, event, attributes),
        )

    def _create_message(
        self,
        channel: Channel,
        event: CanonicalEvent,
        attributes: Optional[dict[str, Any]] = None,
    ) -> Optional[Message]:
        inbox = channel.inbox
        user_id = event.contact_external_id
        contact_inbox = self.find_contact_inbox(inbox, user_id)
        if contact_inbox is None:
            contact_inbox = self.ensure_contact_inbox(
                inbox,
                user_id,
                attributes or self.contact_attributes(channel, user_id, {}),
                platform=ChannelType.INSTAGRAM,
            )
        result = self.build_message(inbox, contact_inbox, event)
        return result.message if result is not None else None

    def contact_attributes(
        self, channel: Channel, user_id: str, profile: dict[str, Any]
    ) -> dict[str, Any]:
        username = profile.get("username")
        attributes: dict[str, Any] = {
            "identifier_instagram": user_id,
            "name": profile.get("name") or username or f"Unknown (IG: {user_id})",
            "avatar_url": profile.get("avatar_url"),
        }
        if username:
            attributes["additional_attributes"] = {
                "social_instagram_user_name": username
            }
        # Through a Facebook page the profile lookup resolves the page-scoped id
        page_scoped_id = profile.get("page_scoped_id")
        if (
            channel.channel_type == ChannelType.FACEBOOK.value
            and page_scoped_id
            and page_scoped_id != user_id
        ):
            attributes["linked_identifiers"] = {"identifier_facebook": page_scoped_id}
        return attributes

    def _handle_read(self, inbox: Inbox, event: CanonicalEvent) -> Optional[Conversation]:
        contact_inbox = self.find_contact_inbox(inbox, event.contact_external_id)
        if contact_inbox is None:
            logger.info("Read receipt for unknown contact; skipping")
            return None
        conversation = self.latest_conversation(inbox, contact_inbox)
        if conversation is None:
            return None

        up_to = event.timestamp
        if event.read_mid:
            read_message = (
                self.db.query(Message)
                .filter(
                    Message.inbox_id == inbox.id,
                    Message.source_id == event.read_mid,
                )
                .first()
            )
            if read_message is not None:
                up_to = read_message.created_at

        conversation.contact_last_seen_at = event.timestamp or utcnow()
        updated = self.advance_outgoing_status(conversation, MessageStatus.READ, up_to)
        logger.info(
            "Instagram read receipt marked %d messages read in conversation %s",
            updated,
            conversation.id,
        )
        return conversation
