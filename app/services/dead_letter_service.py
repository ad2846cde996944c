"""Service for recording and inspecting jobs that exhausted their retries."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, List, Optional
from uuid import UUID

from sqlalchemy.orm import Session

from app.models.dead_letter_job import DeadLetterJob

logger = logging.getLogger(__name__)


class DeadLetterService:
    def __init__(self, db: Session) -> None:
        self.db = db

    def record(
        self,
        task_name: str,
        payload: dict[str, Any],
        reason: str,
        attempts: int,
        queue: Optional[str] = None,
        account_id: Optional[UUID] = None,
        first_attempt_at: Optional[float] = None,
    ) -> DeadLetterJob:
        """Persist a dead-lettered job. Logged at error level for operators."""
        job = DeadLetterJob(
            task_name=task_name,
            queue=queue,
            account_id=account_id,
            payload=payload,
            reason=reason,
            attempts=attempts,
            first_attempt_at=(
                datetime.fromtimestamp(first_attempt_at, tz=timezone.utc)
                if first_attempt_at
                else None
            ),
        )
        self.db.add(job)
        self.db.commit()
        self.db.refresh(job)
        logger.error(
            "Job %s dead-lettered after %d attempts: %s (dead_letter_id=%s)",
            task_name,
            attempts,
            reason,
            job.id,
        )
        return job

    def get(self, dead_letter_id: UUID) -> Optional[DeadLetterJob]:
        return (
            self.db.query(DeadLetterJob)
            .filter(DeadLetterJob.id == dead_letter_id)
            .first()
        )

    def list_unresolved(self, skip: int = 0, limit: int = 100) -> List[DeadLetterJob]:
        return (
            self.db.query(DeadLetterJob)
            .filter(DeadLetterJob.resolved_at.is_(None))
            .order_by(DeadLetterJob.failed_at.desc())
            .offset(skip)
            .limit(limit)
            .all()
        )

    def mark_resolved(self, job: DeadLetterJob) -> DeadLetterJob:
        job.resolved_at = datetime.now(timezone.utc)
        self.db.commit()
        self.db.refresh(job)
        return job
