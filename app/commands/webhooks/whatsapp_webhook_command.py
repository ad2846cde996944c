"""Command to accept WhatsApp Cloud API webhook deliveries for one phone number."""

from __future__ import annotations

from typing import Mapping

from fastapi import HTTPException

from app.channels.normalizer import iter_whatsapp_values
from app.commands.base_webhook import BaseWebhookCommand
from app.constants.inbox import ChannelType
from app.infra.celery_app import QUEUE_LOW
from app.models.channel import Channel
from app.services.channel_service import ChannelService
from app.tasks.whatsapp_events_task import whatsapp_events_task


class WhatsAppWebhookCommand(BaseWebhookCommand):
    """
    Webhook handshake and delivery for ``/webhooks/whatsapp/{phone_number}``.
    The verify token is per channel, so the handshake needs the channel.
    """

    channel_type = ChannelType.WHATSAPP

    def get_channel(self, phone_number: str) -> Channel:
        channel = ChannelService(self.db).find_whatsapp_channel(phone_number)
        if channel is None:
            raise HTTPException(status_code=404, detail="Channel not found")
        return channel

    def verify(self, phone_number: str, params: Mapping[str, str]) -> str:
        return self.verify_subscription(params, self.get_channel(phone_number))

    def execute(
        self, phone_number: str, raw_body: bytes, headers: Mapping[str, str]
    ) -> dict[str, str]:
        """
        Queue one job per ``changes[].value``.

        Returns:
            dict: {"status": "ok"}.

        Raises:
            HTTPException: 403 on a bad signature, 400 on invalid JSON.
        """
        self.verify_request_signature(raw_body, headers)
        body = self.parse_body(raw_body)
        for value in iter_whatsapp_values(body):
            whatsapp_events_task.apply_async(
                kwargs={"value": value, "phone_number": phone_number},
                queue=QUEUE_LOW,
            )
        return {"status": "ok"}
