"""WhatsApp Cloud API adapter."""

from __future__ import annotations

from typing import Optional

from app.adapters.base import BasePlatformAdapter
from app.adapters.meta_graph import FACEBOOK_GRAPH_BASE_URL, GraphApiClient
from app.channels.base import ChannelCapabilities, ChannelMeta
from app.config import get_settings
from app.constants.inbox import ChannelType
from app.exceptions import ChannelConfigurationError
from app.models.channel import Channel
from app.schemas.events import OutboundSendResult

# Cloud API media message types; anything else goes out as a document
MEDIA_TYPES = {"image": "image", "audio": "audio", "video": "video"}


class WhatsAppAdapter(BasePlatformAdapter):
    channel_type = ChannelType.WHATSAPP
    meta = ChannelMeta(label="WhatsApp Cloud")
    capabilities = ChannelCapabilities(
        send_text=True, send_attachment=True, verify_webhook=True
    )

    def __init__(self, base_url: str = FACEBOOK_GRAPH_BASE_URL) -> None:
        self.base_url = base_url

    def _client(self, channel: Channel) -> GraphApiClient:
        api_key = getattr(channel, "api_key", None)
        if not api_key or not getattr(channel, "phone_number_id", None):
            raise ChannelConfigurationError(
                f"WhatsApp channel {channel.id} has no api key or phone_number_id"
            )
        settings = get_settings()
        return GraphApiClient(
            access_token=api_key,
            base_url=self.base_url,
            api_version=settings.graph_api_version,
            timeout=settings.outbound_http_timeout_seconds,
        )

    def _send(self, channel: Channel, payload: dict) -> OutboundSendResult:
        data = self._client(channel).post(
            f"{channel.phone_number_id}/messages",
            {"messaging_product": "whatsapp", **payload},
            "Failed to send WhatsApp message",
        )
        messages = data.get("messages") or [{}]
        return OutboundSendResult(success=True, platform_message_id=messages[0].get("id"))

    def send_text(
        self, channel: Channel, recipient_id: str, text: str
    ) -> OutboundSendResult:
        return self._send(
            channel,
            {"to": recipient_id, "type": "text", "text": {"body": text}},
        )

    def send_attachment(
        self, channel: Channel, recipient_id: str, attachment_type: str, url: str
    ) -> OutboundSendResult:
        media_type = MEDIA_TYPES.get(attachment_type, "document")
        return self._send(
            channel,
            {"to": recipient_id, "type": media_type, media_type: {"link": url}},
        )

    def expected_verify_token(self, channel: Optional[Channel]) -> Optional[str]:
        if channel is None:
            return None
        return getattr(channel, "webhook_verify_token", None)
