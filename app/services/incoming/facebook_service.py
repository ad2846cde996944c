"""Facebook Messenger events: messages, echoes, unsends, delivery and read watermarks."""

from __future__ import annotations

import logging
from typing import Any, Optional

from app.channels.normalizer import FACEBOOK_SUPPORTED_KINDS, normalize_messaging_item
from app.constants.inbox import ChannelType, MessageStatus
from app.core.redis_keys import facebook_lock_key
from app.models.channel import Channel
from app.models.conversation import Conversation
from app.models.inbox import Inbox
from app.models.message import Message
from app.models.mixins import utcnow
from app.schemas.events import CanonicalEvent, EventKind
from app.services.incoming.base import BaseIncomingService

logger = logging.getLogger(__name__)


class FacebookIncomingService(BaseIncomingService):
    channel_type = ChannelType.FACEBOOK

    def perform(
        self, messaging: dict[str, Any], entry_id: Optional[str] = None
    ) -> Optional[Any]:
        """
        Process one ``messaging`` item of a Messenger webhook entry.

        Raises:
            LockAcquisitionFailure: another worker holds the thread lock.
        """
        event = normalize_messaging_item(
            ChannelType.FACEBOOK, messaging, entry_id, FACEBOOK_SUPPORTED_KINDS
        )
        if event is None:
            logger.info("Unsupported Messenger event in entry %s; skipping", entry_id)
            return None
        if not event.sender_id or not event.recipient_id:
            logger.warning("Messenger event without sender or recipient; skipping")
            return None
        if event.kind == EventKind.MESSAGE and not event.message_id:
            logger.warning("Messenger message without mid; skipping")
            return None

        channel = self.channel_service.find_facebook_channel(
            event.account_external_id
        ) or self.channel_service.find_facebook_channel(event.entry_id)
        if not self.channel_usable(channel, event):
            return None

        attributes = self.prefetch_contact_attributes(channel, event)
        return self.run_locked(
            self.lock_key(event), lambda: self._handle(channel, event, attributes)
        )

    def lock_key(self, event: CanonicalEvent) -> str:
        return facebook_lock_key(
            event.contact_external_id, event.account_external_id, self.namespace
        )

    def _handle(
        self,
        channel: Channel,
        event: CanonicalEvent,
        attributes: Optional[dict[str, Any]] = None,
    ) -> Optional[Any]:
        inbox = channel.inbox
        if event.kind == EventKind.DELIVERY:
            return self._handle_watermark(inbox, event, MessageStatus.DELIVERED)
        if event.kind == EventKind.READ:
            return self._handle_watermark(inbox, event, MessageStatus.READ)
        if event.is_deleted:
            return self.mark_deleted(inbox, event.message_id)
        return self.process_once(
            inbox,
            event.message_id,
            lambda: self._create_message(channel, event, attributes),
        )

    def is_agent_echo(self, event: CanonicalEvent) -> bool:
        """An echo of a reply typed in another app (e.g. the Page inbox)."""
        our_app_id = self.settings.facebook_app_id
        return bool(
            event.is_echo
            and event.app_id
            and our_app_id
            and event.app_id != str(our_app_id)
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
            )
        agent_echo = self.is_agent_echo(event)
        if agent_echo:
            logger.info(
                "Echo %s sent from app %s; recording as agent reply",
                event.message_id,
                event.app_id,
            )
        result = self.build_message(
            inbox, contact_inbox, event, match_pending=not agent_echo
        )
        return result.message if result is not None else None

    def contact_attributes(
        self, channel: Channel, user_id: str, profile: dict[str, Any]
    ) -> dict[str, Any]:
        return {
            "identifier_facebook": user_id,
            "name": profile.get("name") or f"Unknown (FB: {user_id})",
            "avatar_url": profile.get("avatar_url"),
        }

    def _handle_watermark(
        self, inbox: Inbox, event: CanonicalEvent, status: MessageStatus
    ) -> Optional[Conversation]:
        contact_inbox = self.find_contact_inbox(inbox, event.contact_external_id)
        if contact_inbox is None:
            logger.info("%s receipt for unknown contact; skipping", status.name.title())
            return None
        conversation = self.latest_conversation(inbox, contact_inbox)
        if conversation is None:
            return None

        if status == MessageStatus.READ:
            conversation.contact_last_seen_at = event.timestamp or utcnow()
        updated = self.advance_outgoing_status(conversation, status, event.watermark)
        if event.delivered_mids:
            updated += self._advance_by_mids(inbox, event.delivered_mids, status)
        logger.info(
            "Messenger %s watermark advanced %d messages in conversation %s",
            status.name.lower(),
            updated,
            conversation.id,
        )
        return conversation

    def _advance_by_mids(
        self, inbox: Inbox, mids: list[str], status: MessageStatus
    ) -> int:
        messages = (
            self.db.query(Message)
            .filter(Message.inbox_id == inbox.id, Message.source_id.in_(mids))
            .all()
        )
        changed = [m for m in messages if m.is_outgoing and m.can_transition_to(status)]
        for message in changed:
            message.status = status.value
        self.db.commit()
        for message in changed:
            self.webhooks.dispatch_message_updated(message, ["status"])
        return len(changed)
