from app.services.channel_service import ChannelService
from app.services.dead_letter_service import DeadLetterService
from app.services.webhook_dispatcher import WebhookDispatcher
from app.services.webhook_notifier import WebhookNotifier

__all__ = [
    "ChannelService",
    "DeadLetterService",
    "WebhookDispatcher",
    "WebhookNotifier",
]
