"""Webhook command handlers."""

from app.commands.base_webhook import BaseWebhookCommand
from app.commands.webhooks.meta_webhook_command import (
    FacebookWebhookCommand,
    InstagramWebhookCommand,
)
from app.commands.webhooks.whatsapp_webhook_command import WhatsAppWebhookCommand

__all__ = [
    "BaseWebhookCommand",
    "FacebookWebhookCommand",
    "InstagramWebhookCommand",
    "WhatsAppWebhookCommand",
]
