# Import celery app first
from app.infra.celery_app import celery_app

# Initialize logging configuration for Celery workers
from app.infra.logging_config import LoggingConfig
from app.tasks.facebook_events_task import facebook_events_task
from app.tasks.instagram_events_task import instagram_events_task
from app.tasks.send_reply_task import send_reply_task
from app.tasks.webhook_task import webhook_task
from app.tasks.whatsapp_events_task import whatsapp_events_task

LoggingConfig()  # Initialize logging

__all__ = [
    "celery_app",
    "facebook_events_task",
    "instagram_events_task",
    "send_reply_task",
    "webhook_task",
    "whatsapp_events_task",
]
