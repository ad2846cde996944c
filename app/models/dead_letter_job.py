"""
DeadLetterJob model: a job that exhausted its retry attempts.

Kept for operator inspection and manual requeue; never deleted by the pipeline.
"""

from __future__ import annotations

import uuid

from sqlalchemy import Column, DateTime, Integer, String, Text, Uuid

from app.db import Base, JSONType
from app.models.mixins import TimestampMixin, utcnow


class DeadLetterJob(Base, TimestampMixin):
    __tablename__ = "dead_letter_jobs"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    task_name = Column(String(255), nullable=False, index=True)
    queue = Column(String(32), nullable=True)
    account_id = Column(Uuid(as_uuid=True), nullable=True, index=True)
    payload = Column(JSONType, nullable=False, default=dict)
    reason = Column(Text, nullable=False)
    attempts = Column(Integer, nullable=False, default=0)
    first_attempt_at = Column(DateTime(timezone=True), nullable=True)
    failed_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    resolved_at = Column(DateTime(timezone=True), nullable=True)
