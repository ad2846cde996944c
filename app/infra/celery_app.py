"""
Celery application.

Three priority lanes: ``critical`` for user-facing broadcast, ``high`` for
inbound message processing and ``low`` for webhooks, echoes and WhatsApp.
"""

from __future__ import annotations

from celery import Celery
from kombu import Queue

from app.config import get_settings

QUEUE_CRITICAL = "critical"
QUEUE_HIGH = "high"
QUEUE_LOW = "low"

settings = get_settings()

celery_app = Celery(
    settings.app_name,
    broker=settings.celery_broker_url,
    backend=settings.celery_result_backend,
    include=["app.tasks"],
)

celery_app.conf.update(
    task_queues=(
        Queue(QUEUE_CRITICAL),
        Queue(QUEUE_HIGH),
        Queue(QUEUE_LOW),
    ),
    task_default_queue=QUEUE_LOW,
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    worker_prefetch_multiplier=1,
    timezone="UTC",
    enable_utc=True,
    task_always_eager=settings.celery_task_always_eager,
)
