"""Instagram messaging adapter (Instagram Graph API, ``graph.instagram.com``)."""

from __future__ import annotations

from typing import Any, Optional

from app.adapters.base import BasePlatformAdapter
from app.adapters.meta_graph import INSTAGRAM_GRAPH_BASE_URL, GraphApiClient
from app.channels.base import ChannelCapabilities, ChannelMeta
from app.config import get_settings
from app.constants.inbox import ChannelType
from app.exceptions import ChannelConfigurationError
from app.models.channel import Channel
from app.schemas.events import OutboundSendResult

ALLOWED_ATTACHMENT_TYPES = ("image", "video", "audio", "file")
PROFILE_FIELDS = "name,username,profile_pic"


class InstagramAdapter(BasePlatformAdapter):
    channel_type = ChannelType.INSTAGRAM
    meta = ChannelMeta(label="Instagram")
    capabilities = ChannelCapabilities(
        send_text=True, send_attachment=True, verify_webhook=True, fetch_profile=True
    )

    def __init__(self, base_url: str = INSTAGRAM_GRAPH_BASE_URL) -> None:
        self.base_url = base_url

    def _client(self, channel: Channel) -> GraphApiClient:
        token = getattr(channel, "access_token", None)
        if not token:
            raise ChannelConfigurationError(
                f"Instagram channel {channel.id} has no access token"
            )
        settings = get_settings()
        return GraphApiClient(
            access_token=token,
            base_url=self.base_url,
            api_version=settings.graph_api_version,
            timeout=settings.outbound_http_timeout_seconds,
        )

    def _messages_path(self, channel: Channel) -> str:
        return f"{channel.instagram_id or 'me'}/messages"

    def send_text(
        self, channel: Channel, recipient_id: str, text: str
    ) -> OutboundSendResult:
        data = self._client(channel).post(
            self._messages_path(channel),
            {
                "recipient": {"id": recipient_id},
                "message": {"text": text},
                "messaging_type": "RESPONSE",
            },
            "Failed to send message",
        )
        return OutboundSendResult(
            success=True, platform_message_id=data.get("message_id")
        )

    def send_attachment(
        self, channel: Channel, recipient_id: str, attachment_type: str, url: str
    ) -> OutboundSendResult:
        if attachment_type not in ALLOWED_ATTACHMENT_TYPES:
            raise ValueError(f"Unsupported attachment type: {attachment_type}")
        data = self._client(channel).post(
            self._messages_path(channel),
            {
                "recipient": {"id": recipient_id},
                "message": {
                    "attachment": {"type": attachment_type, "payload": {"url": url}}
                },
                "messaging_type": "RESPONSE",
            },
            "Failed to send media message",
        )
        return OutboundSendResult(
            success=True, platform_message_id=data.get("message_id")
        )

    def fetch_profile(self, channel: Channel, user_id: str) -> Optional[dict[str, Any]]:
        data = self._client(channel).get(
            user_id, {"fields": PROFILE_FIELDS}, "Failed to fetch user profile"
        )
        return {
            "name": data.get("name"),
            "username": data.get("username"),
            "avatar_url": data.get("profile_pic"),
        }

    def expected_verify_token(self, channel: Optional[Channel]) -> Optional[str]:
        return get_settings().instagram_verify_token
