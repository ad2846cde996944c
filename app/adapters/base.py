"""
Platform adapter interface.

Adapters encapsulate platform-specific outbound calls and webhook checks.
Each adapter declares its ``ChannelCapabilities``; callers check those rather
than the concrete channel class.
"""

from __future__ import annotations

import hashlib
import hmac
from abc import ABC
from typing import Any, Optional

from app.channels.base import ChannelCapabilities, ChannelMeta
from app.constants.inbox import ChannelType
from app.models.channel import Channel
from app.schemas.events import OutboundSendResult

SUBSCRIBE_MODE = "subscribe"
SIGNATURE_PREFIX = "sha256="


def verify_subscription(
    mode: Optional[str], token: Optional[str], expected_token: Optional[str]
) -> bool:
    """Meta-style ``hub.mode`` / ``hub.verify_token`` check."""
    if mode != SUBSCRIBE_MODE or not token or not expected_token:
        return False
    return hmac.compare_digest(token, expected_token)


def verify_signature(
    raw_body: bytes, signature_header: Optional[str], app_secret: Optional[str]
) -> bool:
    """
    Validate ``X-Hub-Signature-256`` (HMAC-SHA256 of the raw body).
    Returns True when no app secret is configured.
    """
    if not app_secret:
        return True
    if not signature_header or not signature_header.startswith(SIGNATURE_PREFIX):
        return False
    expected = hmac.new(
        app_secret.encode("utf-8"), raw_body, hashlib.sha256
    ).hexdigest()
    return hmac.compare_digest(signature_header[len(SIGNATURE_PREFIX) :], expected)


class BasePlatformAdapter(ABC):
    """Contract for platform adapters. New platforms implement this interface."""

    channel_type: ChannelType
    meta: ChannelMeta
    capabilities: ChannelCapabilities = ChannelCapabilities()

    def send_text(
        self, channel: Channel, recipient_id: str, text: str
    ) -> OutboundSendResult:
        """Send a text message. Return the platform message id on success."""
        raise NotImplementedError(f"{self.channel_type} cannot send text")

    def send_attachment(
        self, channel: Channel, recipient_id: str, attachment_type: str, url: str
    ) -> OutboundSendResult:
        """Send one attachment by public URL."""
        raise NotImplementedError(f"{self.channel_type} cannot send attachments")

    def fetch_profile(self, channel: Channel, user_id: str) -> Optional[dict[str, Any]]:
        """Fetch the external user's profile. None when unsupported."""
        return None

    def expected_verify_token(self, channel: Optional[Channel]) -> Optional[str]:
        """Secret the webhook subscription handshake must present."""
        return None

    def verify_webhook(
        self,
        channel: Optional[Channel],
        mode: Optional[str],
        token: Optional[str],
    ) -> bool:
        return verify_subscription(mode, token, self.expected_verify_token(channel))
