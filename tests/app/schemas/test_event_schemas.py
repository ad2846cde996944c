"""Tests for event and dead-letter schemas."""

from datetime import datetime, timezone
from uuid import uuid4

import pytest
from pydantic import ValidationError

from app.constants.inbox import ChannelType
from app.models.dead_letter_job import DeadLetterJob
from app.schemas.dead_letter import DeadLetterJobRead
from app.schemas.events import CanonicalEvent, EventAttachment, EventKind


def test_canonical_event_defaults():
    event = CanonicalEvent(platform="instagram", kind="message")
    assert event.platform == ChannelType.INSTAGRAM
    assert event.kind == EventKind.MESSAGE
    assert event.attachments == []
    assert event.is_echo is False
    assert not event.has_content


def test_canonical_event_rejects_unknown_platform():
    with pytest.raises(ValidationError):
        CanonicalEvent(platform="telegram", kind="message")


def test_has_content_with_attachment_only():
    event = CanonicalEvent(
        platform="facebook",
        kind="message",
        attachments=[EventAttachment(type="image", url="https://cdn.example.com/a.png")],
    )
    assert event.has_content


def test_dead_letter_read_from_model():
    job = DeadLetterJob(
        id=uuid4(),
        task_name="app.tasks.webhook_task.webhook_task",
        payload={"url": "https://hooks.example.com"},
        reason="max attempts reached (3)",
        attempts=3,
        failed_at=datetime.now(timezone.utc),
    )
    read = DeadLetterJobRead.model_validate(job)
    assert read.task_name == "app.tasks.webhook_task.webhook_task"
    assert read.queue is None
    assert read.resolved_at is None
