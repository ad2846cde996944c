"""Celery task processing one WhatsApp Cloud ``changes[].value``."""

from __future__ import annotations

import time
from typing import Any, Dict, Optional

from app.core.retry import WHATSAPP_EVENTS_POLICY
from app.infra.celery_app import celery_app
from app.infra.logging_config import get_logger
from app.infra.redis_client import get_redis
from app.services.incoming.whatsapp_service import WhatsAppIncomingService
from app.tasks.base import run_with_retry
from app.utils.db.db_session_helper import db_session

logger = get_logger("whatsapp_events")


@celery_app.task(
    bind=True,
    name="app.tasks.whatsapp_events_task.whatsapp_events_task",
    max_retries=None,
)
def whatsapp_events_task(
    self,
    value: Dict[str, Any],
    phone_number: Optional[str] = None,
    first_attempt_at: Optional[float] = None,
) -> None:
    first_attempt_at = first_attempt_at or time.time()

    def handle() -> None:
        logger.debug("Processing WhatsApp value for %s", phone_number)
        with db_session() as db:
            WhatsAppIncomingService(db, get_redis()).perform(value, phone_number)

    run_with_retry(
        self,
        WHATSAPP_EVENTS_POLICY,
        handle,
        payload={"value": value, "phone_number": phone_number},
        first_attempt_at=first_attempt_at,
    )
