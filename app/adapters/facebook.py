"""Facebook Messenger adapter (Graph API, ``graph.facebook.com``)."""

from __future__ import annotations

from typing import Any, Optional

from app.adapters.base import BasePlatformAdapter
from app.adapters.meta_graph import FACEBOOK_GRAPH_BASE_URL, GraphApiClient
from app.channels.base import ChannelCapabilities, ChannelMeta
from app.config import get_settings
from app.constants.inbox import ChannelType
from app.exceptions import ChannelConfigurationError
from app.models.channel import Channel
from app.schemas.events import OutboundSendResult

ALLOWED_ATTACHMENT_TYPES = ("image", "video", "audio", "file")
PROFILE_FIELDS = "id,first_name,last_name,profile_pic"


class FacebookAdapter(BasePlatformAdapter):
    channel_type = ChannelType.FACEBOOK
    meta = ChannelMeta(label="Facebook Messenger")
    capabilities = ChannelCapabilities(
        send_text=True, send_attachment=True, verify_webhook=True, fetch_profile=True
    )

    def __init__(self, base_url: str = FACEBOOK_GRAPH_BASE_URL) -> None:
        self.base_url = base_url

    def _client(self, channel: Channel) -> GraphApiClient:
        token = getattr(channel, "page_access_token", None)
        if not token or not channel.page_id:
            raise ChannelConfigurationError(
                f"Facebook channel {channel.id} has no page id or page access token"
            )
        settings = get_settings()
        return GraphApiClient(
            access_token=token,
            base_url=self.base_url,
            api_version=settings.graph_api_version,
            timeout=settings.outbound_http_timeout_seconds,
        )

    def send_text(
        self, channel: Channel, recipient_id: str, text: str
    ) -> OutboundSendResult:
        data = self._client(channel).post(
            f"{channel.page_id}/messages",
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
            f"{channel.page_id}/messages",
            {
                "recipient": {"id": recipient_id},
                "message": {
                    "attachment": {"type": attachment_type, "payload": {"url": url}}
                },
                "messaging_type": "RESPONSE",
            },
            "Failed to send attachment",
        )
        return OutboundSendResult(
            success=True, platform_message_id=data.get("message_id")
        )

    def fetch_profile(self, channel: Channel, user_id: str) -> Optional[dict[str, Any]]:
        data = self._client(channel).get(
            user_id, {"fields": PROFILE_FIELDS}, "Failed to fetch user profile"
        )
        name = " ".join(
            part for part in (data.get("first_name"), data.get("last_name")) if part
        )
        return {
            "name": name or None,
            "avatar_url": data.get("profile_pic"),
            "page_scoped_id": data.get("id"),
        }

    def expected_verify_token(self, channel: Optional[Channel]) -> Optional[str]:
        return get_settings().facebook_verify_token
