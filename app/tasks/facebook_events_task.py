"""Celery task processing one Messenger ``messaging`` item."""

from __future__ import annotations

import time
from typing import Any, Dict, Optional

from app.core.retry import FACEBOOK_EVENTS_POLICY
from app.infra.celery_app import celery_app
from app.infra.logging_config import get_logger
from app.infra.redis_client import get_redis
from app.services.incoming.facebook_service import FacebookIncomingService
from app.tasks.base import run_with_retry
from app.utils.db.db_session_helper import db_session

logger = get_logger("facebook_events")


@celery_app.task(
    bind=True,
    name="app.tasks.facebook_events_task.facebook_events_task",
    max_retries=None,
)
def facebook_events_task(
    self,
    messaging: Dict[str, Any],
    entry_id: Optional[str] = None,
    first_attempt_at: Optional[float] = None,
) -> None:
    """
    Apply one Messenger event. Re-enqueued with backoff while its thread lock
    is busy, dead-lettered once the retry policy is exhausted.
    """
    first_attempt_at = first_attempt_at or time.time()

    def handle() -> None:
        logger.debug("Processing Messenger event for entry %s", entry_id)
        with db_session() as db:
            FacebookIncomingService(db, get_redis()).perform(messaging, entry_id)

    run_with_retry(
        self,
        FACEBOOK_EVENTS_POLICY,
        handle,
        payload={"messaging": messaging, "entry_id": entry_id},
        first_attempt_at=first_attempt_at,
    )
