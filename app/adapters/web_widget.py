"""
Web widget adapter.

The widget reads replies straight from the inbox, so there is no platform
to push to; only the identity HMAC check lives here.
"""

from __future__ import annotations

import hashlib
import hmac
from typing import Optional

from app.adapters.base import BasePlatformAdapter
from app.channels.base import ChannelCapabilities, ChannelMeta
from app.constants.inbox import ChannelType
from app.models.channel import Channel


class WebWidgetAdapter(BasePlatformAdapter):
    channel_type = ChannelType.WEB_WIDGET
    meta = ChannelMeta(label="Website")
    capabilities = ChannelCapabilities(verify_webhook=True)

    def verify_identity(
        self, channel: Channel, identifier: str, identifier_hash: Optional[str]
    ) -> bool:
        """Check the widget's ``identifier_hash`` (HMAC-SHA256 with the channel's hmac token)."""
        token = getattr(channel, "hmac_token", None)
        if not token:
            return True
        if not identifier_hash:
            return False
        expected = hmac.new(
            token.encode("utf-8"), identifier.encode("utf-8"), hashlib.sha256
        ).hexdigest()
        return hmac.compare_digest(expected, identifier_hash)

    def verify_webhook(
        self,
        channel: Optional[Channel],
        mode: Optional[str],
        token: Optional[str],
    ) -> bool:
        if channel is None or token is None:
            return False
        return hmac.compare_digest(token, channel.website_token or "")
