"""WhatsApp Cloud API events: inbound messages and outgoing message statuses."""

from __future__ import annotations

import logging
from typing import Any, Optional

from app.channels.normalizer import normalize_whatsapp_value
from app.constants.inbox import EXTERNAL_ERROR_MAX_LENGTH, ChannelType, MessageStatus
from app.core.redis_keys import whatsapp_lock_key
from app.models.channel import Channel
from app.models.message import Message
from app.schemas.events import CanonicalEvent, EventKind
from app.services.incoming.base import BaseIncomingService

logger = logging.getLogger(__name__)

STATUS_MAP = {
    "sent": MessageStatus.SENT,
    "delivered": MessageStatus.DELIVERED,
    "read": MessageStatus.READ,
    "failed": MessageStatus.FAILED,
}


def _error_title(errors: list[dict[str, Any]]) -> Optional[str]:
    if not errors:
        return None
    first = errors[0] or {}
    title = first.get("title") or first.get("message")
    if title is None:
        return None
    return str(title)[:EXTERNAL_ERROR_MAX_LENGTH]


class WhatsAppIncomingService(BaseIncomingService):
    channel_type = ChannelType.WHATSAPP

    def perform(
        self, value: dict[str, Any], phone_number: Optional[str] = None
    ) -> list[Any]:
        """
        Process one ``changes[].value`` of a WhatsApp Cloud webhook.

        Events of a value are handled in order; a retried value skips the
        messages already stored and re-applies statuses, which only move
        forward.

        Raises:
            LockAcquisitionFailure: another worker holds a thread lock.
        """
        events = normalize_whatsapp_value(value)
        if not events:
            logger.info("WhatsApp value without messages or statuses; skipping")
            return []

        first = events[0]
        channel = self.channel_service.find_whatsapp_channel(
            phone_number or first.account_external_id, first.phone_number_id
        )
        if not self.channel_usable(channel, first):
            return []

        results = []
        for event in events:
            if not event.sender_id or not event.recipient_id or not event.message_id:
                logger.warning("WhatsApp event with missing ids; skipping")
                continue
            result = self.run_locked(
                self.lock_key(event), lambda e=event: self._handle(channel, e)
            )
            if result is not None:
                results.append(result)
        return results

    def lock_key(self, event: CanonicalEvent) -> str:
        return whatsapp_lock_key(
            event.contact_external_id,
            event.phone_number_id or event.account_external_id,
            self.namespace,
        )

    def _handle(self, channel: Channel, event: CanonicalEvent) -> Optional[Message]:
        if event.kind == EventKind.STATUS:
            return self._handle_status(channel, event)
        return self.process_once(
            channel.inbox, event.message_id, lambda: self._create_message(channel, event)
        )

    def _create_message(self, channel: Channel, event: CanonicalEvent) -> Optional[Message]:
        inbox = channel.inbox
        wa_id = event.contact_external_id
        phone_number = f"+{wa_id.lstrip('+')}"
        contact_inbox = self.ensure_contact_inbox(
            inbox,
            wa_id,
            {"name": event.profile_name or phone_number, "phone_number": phone_number},
        )
        result = self.build_message(inbox, contact_inbox, event)
        return result.message if result is not None else None

    def _handle_status(self, channel: Channel, event: CanonicalEvent) -> Optional[Message]:
        status = STATUS_MAP.get(event.status or "")
        if status is None:
            logger.info("Unknown WhatsApp status %s; skipping", event.status)
            return None
        message = (
            self.db.query(Message)
            .filter(
                Message.inbox_id == channel.inbox.id,
                Message.source_id == event.message_id,
            )
            .first()
        )
        if message is None:
            logger.info("Status for unknown message %s; skipping", event.message_id)
            return None
        if not message.can_transition_to(status):
            logger.debug(
                "Ignoring WhatsApp status %s for message %s in status %s",
                event.status,
                message.id,
                message.status,
            )
            return None

        message.status = status.value
        if status == MessageStatus.FAILED:
            message.external_error = _error_title(event.errors)
        self.db.commit()
        self.db.refresh(message)
        self.webhooks.dispatch_message_updated(message, ["status"])
        return message
