"""Pydantic schemas for dead-lettered jobs."""

from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel


class DeadLetterJobRead(BaseModel):
    """Response schema for a dead-lettered job."""

    id: UUID
    task_name: str
    queue: str | None
    account_id: UUID | None
    payload: dict[str, Any]
    reason: str
    attempts: int
    first_attempt_at: datetime | None
    failed_at: datetime
    resolved_at: datetime | None

    model_config = {"from_attributes": True}
