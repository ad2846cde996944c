"""
Shared ChannelEventProcessor steps for the per-platform incoming services.

Every inbound event runs: normalize -> resolve channel -> fetch an unknown
sender's profile -> lock the external thread -> idempotency check -> resolve
contact -> persist -> release. A step that cannot continue returns None
(skipped); only ``LockAcquisitionFailure`` asks the caller to retry.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Callable, Optional, TypeVar

import requests
from redis import Redis
from sqlalchemy.orm import Session

from app.builders.contact_inbox_builder import ContactInboxWithContactBuilder
from app.builders.message_builder import BuildResult, MessageBuilder
from app.config import get_settings
from app.constants.inbox import (
    DELETED_MESSAGE_CONTENT,
    ChannelType,
    MessageStatus,
    MessageType,
)
from app.core.idempotency import IdempotencyGuard
from app.core.lock_manager import LockManager
from app.core.redis_keys import message_source_key
from app.core.registry import ChannelAdapterRegistry, build_default_registry
from app.exceptions import LockAcquisitionFailure, PlatformApiError
from app.models.channel import Channel
from app.models.contact_inbox import ContactInbox
from app.models.conversation import Conversation
from app.models.inbox import Inbox
from app.models.message import Message
from app.schemas.events import CanonicalEvent, EventKind
from app.services.channel_service import ChannelService
from app.services.webhook_dispatcher import WebhookDispatcher

logger = logging.getLogger(__name__)

T = TypeVar("T")


class BaseIncomingService:
    channel_type: ChannelType

    def __init__(
        self,
        db: Session,
        redis_client: Redis,
        registry: Optional[ChannelAdapterRegistry] = None,
        lock_manager: Optional[LockManager] = None,
    ) -> None:
        self.db = db
        self.redis = redis_client
        self.settings = get_settings()
        self.namespace = self.settings.redis_namespace or None
        self.channel_service = ChannelService(db, redis_client)
        self.lock_manager = lock_manager or LockManager(redis_client)
        self.registry = registry or build_default_registry()
        self.idempotency = IdempotencyGuard(
            redis_client,
            self.settings.message_idempotency_ttl_seconds,
            key_builder=lambda mid: message_source_key(mid, self.namespace),
        )
        self.webhooks = WebhookDispatcher(db)

    # --- locking & idempotency -------------------------------------------

    def run_locked(self, key: str, fn: Callable[[], T]) -> T:
        return self.lock_manager.with_lock(key, fn, self.settings.lock_ttl_seconds)

    def message_exists(self, inbox: Inbox, source_id: str) -> bool:
        return (
            self.db.query(Message.id)
            .filter(Message.inbox_id == inbox.id, Message.source_id == source_id)
            .first()
            is not None
        )

    def process_once(
        self, inbox: Inbox, source_id: str, fn: Callable[[], Optional[T]]
    ) -> Optional[T]:
        """
        Apply ``fn`` at most once for ``source_id``.

        A stored message or a ``done`` marker means the event was applied. A
        ``processing`` marker owned by another worker is treated like a busy
        lock so the job comes back once that worker finishes.
        """
        if self.idempotency.is_done(source_id) or self.message_exists(
            inbox, source_id
        ):
            logger.info("Event %s already processed; skipping", source_id)
            return None
        if not self.idempotency.mark_in_progress(source_id):
            if self.idempotency.is_done(source_id):
                return None
            raise LockAcquisitionFailure(
                message_source_key(source_id, self.namespace)
            )
        try:
            result = fn()
        except Exception:
            self.idempotency.clear(source_id)
            raise
        self.idempotency.mark_done(source_id)
        return result

    # --- channel health ---------------------------------------------------

    def channel_usable(self, channel: Optional[Channel], event: CanonicalEvent) -> bool:
        if channel is None:
            logger.warning(
                "No %s channel for account %s; skipping event %s",
                event.platform.value,
                event.account_external_id,
                event.message_id,
            )
            return False
        if channel.inbox is None:
            logger.warning("Channel %s has no inbox; skipping", channel.id)
            return False
        if self.channel_service.reauthorization_required(channel):
            logger.warning(
                "Channel %s requires reauthorization; skipping event %s",
                channel.id,
                event.message_id,
            )
            return False
        return True

    # --- contacts ---------------------------------------------------------

    def contact_attributes(
        self, channel: Channel, user_id: str, profile: dict[str, Any]
    ) -> dict[str, Any]:
        raise NotImplementedError

    def prefetch_contact_attributes(
        self, channel: Channel, event: CanonicalEvent
    ) -> Optional[dict[str, Any]]:
        """
        Contact attributes for a sender not yet bound to the inbox.

        Runs before the thread lock is taken: the profile request can outlast
        the lock TTL, which only covers the database writes.
        """
        user_id = event.contact_external_id
        if event.kind != EventKind.MESSAGE or event.is_deleted or not user_id:
            return None
        if self.find_contact_inbox(channel.inbox, user_id) is not None:
            return None
        return self.contact_attributes(
            channel, user_id, self.fetch_profile(channel, user_id)
        )

    def fetch_profile(self, channel: Channel, user_id: str) -> dict[str, Any]:
        """
        Look up the external user's profile through the channel adapter.

        An expired token (platform error 190) counts toward reauthorization;
        any platform or network error yields an empty profile.
        """
        adapter = self.registry.get(channel.type)
        if adapter is None or not adapter.capabilities.fetch_profile:
            return {}
        try:
            return adapter.fetch_profile(channel, user_id) or {}
        except PlatformApiError as e:
            if e.is_authorization_error:
                self.channel_service.authorization_error(channel)
            logger.warning(
                "Profile fetch failed for %s on channel %s: %s", user_id, channel.id, e
            )
            return {}
        except requests.RequestException as e:
            logger.warning(
                "Profile fetch failed for %s on channel %s: %s", user_id, channel.id, e
            )
            return {}

    def ensure_contact_inbox(
        self,
        inbox: Inbox,
        source_id: str,
        contact_attributes: dict[str, Any],
        platform: Optional[ChannelType] = None,
    ) -> ContactInbox:
        existing = self.find_contact_inbox(inbox, source_id)
        if existing is not None:
            return existing
        return ContactInboxWithContactBuilder(
            self.db, inbox, contact_attributes, source_id, platform=platform
        ).perform()

    def find_contact_inbox(self, inbox: Inbox, source_id: str) -> Optional[ContactInbox]:
        return (
            self.db.query(ContactInbox)
            .filter(
                ContactInbox.inbox_id == inbox.id,
                ContactInbox.source_id == source_id,
            )
            .first()
        )

    # --- messages ---------------------------------------------------------

    def build_message(
        self,
        inbox: Inbox,
        contact_inbox: ContactInbox,
        event: CanonicalEvent,
        match_pending: bool = True,
    ) -> Optional[BuildResult]:
        result = MessageBuilder(
            self.db, inbox, contact_inbox, event, match_pending=match_pending
        ).perform()
        if result is None:
            return None
        if result.conversation_created:
            self.webhooks.dispatch_conversation_created(result.conversation)
        if result.message_created:
            self.webhooks.dispatch_message_created(result.message)
        else:
            self.webhooks.dispatch_message_updated(
                result.message, ["source_id", "status"]
            )
        return result

    def mark_deleted(self, inbox: Inbox, source_id: str) -> Optional[Message]:
        """Unsend: blank the stored message and drop its attachments."""
        message = (
            self.db.query(Message)
            .filter(Message.inbox_id == inbox.id, Message.source_id == source_id)
            .first()
        )
        if message is None:
            logger.info("Unsend for unknown message %s; skipping", source_id)
            return None
        message.content = DELETED_MESSAGE_CONTENT
        message.content_attributes = {
            **(message.content_attributes or {}),
            "deleted": True,
        }
        message.attachments.clear()
        self.db.commit()
        self.db.refresh(message)
        self.webhooks.dispatch_message_updated(message, ["content"])
        return message

    def advance_outgoing_status(
        self,
        conversation: Conversation,
        status: MessageStatus,
        up_to: Optional[datetime],
    ) -> int:
        """
        Move sent outgoing messages created at or before ``up_to`` forward to
        ``status``. Returns the number of messages changed.
        """
        query = self.db.query(Message).filter(
            Message.conversation_id == conversation.id,
            Message.message_type == MessageType.OUTGOING.value,
            Message.source_id.isnot(None),
            Message.status >= MessageStatus.SENT.value,
            Message.status < status.value,
        )
        if up_to is not None:
            query = query.filter(Message.created_at <= up_to)
        messages = query.all()
        for message in messages:
            message.status = status.value
        self.db.commit()
        for message in messages:
            self.webhooks.dispatch_message_updated(message, ["status"])
        return len(messages)

    def latest_conversation(
        self, inbox: Inbox, contact_inbox: ContactInbox
    ) -> Optional[Conversation]:
        return (
            self.db.query(Conversation)
            .filter(
                Conversation.inbox_id == inbox.id,
                Conversation.contact_id == contact_inbox.contact_id,
            )
            .order_by(Conversation.created_at.desc())
            .first()
        )
