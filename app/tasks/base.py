"""Retry-or-dead-letter handling shared by the pipeline tasks."""

from __future__ import annotations

import time
from typing import Any, Callable, Optional, Tuple, Type, TypeVar

from celery import Task

from app.core.retry import RetryPolicy
from app.exceptions import LockAcquisitionFailure
from app.infra.logging_config import get_logger
from app.services.dead_letter_service import DeadLetterService
from app.utils.db.db_session_helper import db_session

logger = get_logger("tasks")

T = TypeVar("T")


def dead_letter(
    task: Task,
    payload: dict[str, Any],
    reason: str,
    attempts: int,
    first_attempt_at: Optional[float] = None,
    account_id: Optional[Any] = None,
) -> None:
    delivery_info = getattr(task.request, "delivery_info", None) or {}
    with db_session() as db:
        DeadLetterService(db).record(
            task_name=task.name,
            payload=payload,
            reason=reason,
            attempts=attempts,
            queue=delivery_info.get("routing_key"),
            account_id=account_id,
            first_attempt_at=first_attempt_at,
        )


def run_with_retry(
    task: Task,
    policy: RetryPolicy,
    fn: Callable[[], T],
    payload: dict[str, Any],
    first_attempt_at: float,
    retry_on: Tuple[Type[BaseException], ...] = (LockAcquisitionFailure,),
    resolve_account_id: Optional[Callable[[], Any]] = None,
) -> Optional[T]:
    """
    Run ``fn``; on a retryable error re-enqueue ``task`` with the same payload
    or, once the policy is exhausted, dead-letter it.

    ``payload`` is the task's immutable kwargs without ``first_attempt_at``,
    which is carried separately so the deadline spans every attempt.
    ``resolve_account_id`` names the tenant of a dead-lettered job.
    """
    try:
        return fn()
    except retry_on as e:
        attempt = task.request.retries + 1
        decision = policy.decide(attempt, first_attempt_at, time.time())
        if decision.retry:
            logger.info(
                "%s attempt %d failed (%s); retrying in %ss",
                task.name,
                attempt,
                e,
                decision.countdown,
            )
            raise task.retry(
                exc=e,
                countdown=decision.countdown,
                kwargs={**payload, "first_attempt_at": first_attempt_at},
            )
        logger.error(
            "%s giving up after %d attempts: %s", task.name, attempt, decision.reason
        )
        dead_letter(
            task,
            payload,
            reason=f"{decision.reason}: {e}",
            attempts=attempt,
            first_attempt_at=first_attempt_at,
            account_id=resolve_account_id() if resolve_account_id else None,
        )
        return None
