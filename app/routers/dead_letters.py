"""
Operator API for jobs that exhausted their retries: list, inspect and put one
back on its queue.
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from app.db import get_db
from app.infra.celery_app import QUEUE_LOW, celery_app
from app.models.dead_letter_job import DeadLetterJob
from app.routers.utils.dependencies import get_dead_letter_by_id
from app.schemas.dead_letter import DeadLetterJobRead
from app.services.dead_letter_service import DeadLetterService

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/dead-letters",
    tags=["dead-letters"],
    responses={404: {"description": "Not found"}},
)


@router.get("", response_model=dict[str, Any])
def list_dead_letters(
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=500),
    db: Session = Depends(get_db),
) -> dict[str, Any]:
    """Unresolved dead-lettered jobs, newest first."""
    jobs = DeadLetterService(db).list_unresolved(skip=skip, limit=limit)
    return {
        "data": [
            DeadLetterJobRead.model_validate(job).model_dump(mode="json")
            for job in jobs
        ]
    }


@router.get("/{dead_letter_id}", response_model=dict[str, Any])
def get_dead_letter(
    job: DeadLetterJob = Depends(get_dead_letter_by_id),
) -> dict[str, Any]:
    return {"data": DeadLetterJobRead.model_validate(job).model_dump(mode="json")}


@router.post("/{dead_letter_id}/requeue", response_model=dict[str, Any])
def requeue_dead_letter(
    job: DeadLetterJob = Depends(get_dead_letter_by_id),
    db: Session = Depends(get_db),
) -> dict[str, Any]:
    """
    Send the job's original payload back to its queue with fresh retry
    attempts and mark the dead letter resolved. 409 if already resolved.
    """
    if job.resolved_at is not None:
        raise HTTPException(status_code=409, detail="Dead letter already resolved")
    result = celery_app.send_task(
        job.task_name, kwargs=dict(job.payload or {}), queue=job.queue or QUEUE_LOW
    )
    job = DeadLetterService(db).mark_resolved(job)
    logger.info(
        "Requeued dead letter %s as task %s (%s)", job.id, result.id, job.task_name
    )
    return {
        "data": {
            **DeadLetterJobRead.model_validate(job).model_dump(mode="json"),
            "task_id": result.id,
        }
    }
