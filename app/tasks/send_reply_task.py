"""Celery task dispatching one outgoing message to its platform."""

from __future__ import annotations

import time
from typing import Optional
from uuid import UUID

from app.commands.outbound.send_reply_command import SendReplyCommand
from app.core.retry import SEND_REPLY_POLICY
from app.infra.celery_app import celery_app
from app.infra.logging_config import get_logger
from app.models.message import Message
from app.tasks.base import run_with_retry
from app.utils.db.db_session_helper import db_session

logger = get_logger("send_reply")


@celery_app.task(
    bind=True,
    name="app.tasks.send_reply_task.send_reply_task",
    max_retries=None,
)
def send_reply_task(
    self, message_id: str, first_attempt_at: Optional[float] = None
) -> Optional[str]:
    """
    Send the outgoing message ``message_id``. Any send failure is retried by
    ``SEND_REPLY_POLICY``; a retry of an already-sent message is a no-op.

    Returns:
        Optional[str]: the platform message id once sent.
    """
    first_attempt_at = first_attempt_at or time.time()

    def handle() -> Optional[str]:
        with db_session() as db:
            message = SendReplyCommand(db).execute(UUID(str(message_id)))
            return message.source_id if message is not None else None

    def message_account_id() -> Optional[UUID]:
        with db_session() as db:
            return (
                db.query(Message.account_id)
                .filter(Message.id == UUID(str(message_id)))
                .scalar()
            )

    source_id = run_with_retry(
        self,
        SEND_REPLY_POLICY,
        handle,
        payload={"message_id": str(message_id)},
        first_attempt_at=first_attempt_at,
        retry_on=(Exception,),
        resolve_account_id=message_account_id,
    )
    if source_id:
        logger.info("Message %s delivered as %s", message_id, source_id)
    return source_id
