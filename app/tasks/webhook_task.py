"""Celery task delivering one outgoing webhook notification."""

from __future__ import annotations

import time
from typing import Any, Dict, Optional

import requests

from app.core.retry import WEBHOOK_POLICY
from app.exceptions import WebhookDeliveryError
from app.infra.celery_app import celery_app
from app.infra.logging_config import get_logger
from app.infra.redis_client import get_redis
from app.services.webhook_notifier import WebhookNotifier
from app.tasks.base import run_with_retry

logger = get_logger("webhooks")


@celery_app.task(
    bind=True,
    name="app.tasks.webhook_task.webhook_task",
    max_retries=None,
)
def webhook_task(
    self,
    url: str,
    payload: Dict[str, Any],
    event: Optional[str] = None,
    resource_id: Optional[str] = None,
    first_attempt_at: Optional[float] = None,
) -> Optional[bool]:
    first_attempt_at = first_attempt_at or time.time()

    def handle() -> bool:
        return WebhookNotifier(get_redis()).trigger(
            url, payload, event=event, resource_id=resource_id
        )

    delivered = run_with_retry(
        self,
        WEBHOOK_POLICY,
        handle,
        payload={
            "url": url,
            "payload": payload,
            "event": event,
            "resource_id": resource_id,
        },
        first_attempt_at=first_attempt_at,
        retry_on=(WebhookDeliveryError, requests.RequestException),
    )
    if delivered is False:
        logger.info("Webhook %s dropped: invalid URL", event)
    return delivered
