"""
Channel lookup and authorization health.

Answers "given a platform account id, which channel (and therefore which
tenant and inbox) owns it" and tracks whether a channel's credentials need
to be re-authorized.
"""

from __future__ import annotations

import logging
from typing import Iterable, Optional

from redis import Redis
from sqlalchemy.orm import Session

from app.config import get_settings
from app.constants.inbox import SetupState
from app.core.redis_keys import (
    authorization_error_count_key,
    reauthorization_required_key,
)
from app.models.channel import (
    Channel,
    FacebookChannel,
    InstagramChannel,
    WebWidgetChannel,
    WhatsAppChannel,
)

logger = logging.getLogger(__name__)


class ChannelService:
    def __init__(self, db: Session, redis_client: Optional[Redis] = None) -> None:
        self.db = db
        self.redis = redis_client
        self.settings = get_settings()

    # --- lookup -----------------------------------------------------------

    def find_instagram_channel(self, candidate_ids: Iterable[str]) -> Optional[Channel]:
        """
        Resolve the channel owning one of ``candidate_ids`` (tried in order).

        A dedicated Instagram channel wins over a Facebook page with a linked
        Instagram account. If nothing matches, a single channel still in
        ``pending_setup`` claims the first candidate id.
        """
        ids = [i for i in candidate_ids if i]
        for instagram_id in ids:
            channel = (
                self.db.query(InstagramChannel)
                .filter(InstagramChannel.instagram_id == instagram_id)
                .first()
            )
            if channel is not None:
                return channel
        for instagram_id in ids:
            channel = (
                self.db.query(FacebookChannel)
                .filter(FacebookChannel.instagram_id == instagram_id)
                .first()
            )
            if channel is not None:
                return channel
        if ids:
            return self.claim_pending_instagram_channel(ids[0])
        return None

    def claim_pending_instagram_channel(self, instagram_id: str) -> Optional[Channel]:
        """
        Bind ``instagram_id`` to the Instagram channel awaiting its real id.

        Only an unambiguous claim is made: with zero or several pending
        channels the event cannot be attributed and None is returned.
        """
        pending = (
            self.db.query(InstagramChannel)
            .filter(InstagramChannel.setup_state == SetupState.PENDING_SETUP.value)
            .limit(2)
            .all()
        )
        if len(pending) != 1:
            if pending:
                logger.warning(
                    "Multiple Instagram channels pending setup; not claiming %s",
                    instagram_id,
                )
            return None
        channel = pending[0]
        logger.info(
            "Claiming pending Instagram channel %s for instagram_id %s",
            channel.id,
            instagram_id,
        )
        channel.instagram_id = instagram_id
        channel.setup_state = SetupState.ACTIVE.value
        self.db.commit()
        self.db.refresh(channel)
        return channel

    def find_facebook_channel(self, page_id: Optional[str]) -> Optional[Channel]:
        if not page_id:
            return None
        return (
            self.db.query(FacebookChannel)
            .filter(FacebookChannel.page_id == page_id)
            .first()
        )

    def find_whatsapp_channel(
        self,
        phone_number: Optional[str] = None,
        phone_number_id: Optional[str] = None,
    ) -> Optional[Channel]:
        """Find by the route's phone number, falling back to the Cloud API phone_number_id."""
        if phone_number:
            normalized = f"+{phone_number.lstrip('+')}"
            channel = (
                self.db.query(WhatsAppChannel)
                .filter(WhatsAppChannel.phone_number == normalized)
                .first()
            )
            if channel is not None:
                return channel
        if phone_number_id:
            return (
                self.db.query(WhatsAppChannel)
                .filter(
                    WhatsAppChannel.provider_config["phone_number_id"].as_string()
                    == phone_number_id
                )
                .first()
            )
        return None

    def find_web_widget_channel(self, website_token: str) -> Optional[Channel]:
        return (
            self.db.query(WebWidgetChannel)
            .filter(WebWidgetChannel.website_token == website_token)
            .first()
        )

    # --- reauthorization --------------------------------------------------

    def authorization_error(self, channel: Channel) -> int:
        """Count an authorization failure; flag the channel once the threshold is hit."""
        if self.redis is None:
            return 0
        count = int(
            self.redis.incr(authorization_error_count_key(channel.type, channel.id))
        )
        if count >= self.settings.reauthorization_error_threshold:
            self.prompt_reauthorization(channel)
        return count

    def prompt_reauthorization(self, channel: Channel) -> None:
        if self.redis is None:
            return
        logger.warning(
            "Channel %s (%s) requires reauthorization", channel.id, channel.type.value
        )
        self.redis.set(reauthorization_required_key(channel.type, channel.id), "1")

    def reauthorization_required(self, channel: Channel) -> bool:
        if self.redis is None:
            return False
        return bool(
            self.redis.exists(reauthorization_required_key(channel.type, channel.id))
        )

    def mark_reauthorized(self, channel: Channel) -> None:
        if self.redis is None:
            return
        self.redis.delete(
            authorization_error_count_key(channel.type, channel.id),
            reauthorization_required_key(channel.type, channel.id),
        )
