"""Tests for retry and dead-letter handling of pipeline tasks."""

import time
from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import pytest
from celery.exceptions import Retry

from app.channels.base import ChannelCapabilities
from app.constants.inbox import ChannelType
from app.core.lock_manager import LockManager
from app.core.redis_keys import instagram_lock_key
from app.core.registry import ChannelAdapterRegistry
from app.core.retry import INSTAGRAM_EVENTS_POLICY, RETRY_DEADLINE_SECONDS
from app.exceptions import LockAcquisitionFailure, PlatformApiError
from app.models.dead_letter_job import DeadLetterJob
from app.models.message import Message
from app.schemas.events import OutboundSendResult
from app.tasks.base import run_with_retry
from app.tasks.instagram_events_task import instagram_events_task
from app.tasks.send_reply_task import send_reply_task
from app.tasks.webhook_task import webhook_task

PAYLOAD = {"messaging": {"sender": {"id": "u"}}, "entry_id": "e1"}


def _fake_task(retries):
    return SimpleNamespace(
        name="app.tasks.fake_task",
        request=SimpleNamespace(retries=retries, delivery_info={"routing_key": "high"}),
        retry=MagicMock(side_effect=Retry("retry")),
    )


def _lock_busy():
    raise LockAcquisitionFailure("IG_MESSAGE_CREATE_LOCK::u::a")


def test_lock_contention_retries_with_backoff(db):
    first_attempt_at = time.time()
    for retries in range(7):
        task = _fake_task(retries)
        with pytest.raises(Retry):
            run_with_retry(task, INSTAGRAM_EVENTS_POLICY, _lock_busy, PAYLOAD, first_attempt_at)
        kwargs = task.retry.call_args.kwargs
        assert kwargs["countdown"] == INSTAGRAM_EVENTS_POLICY.delay_for(retries + 1)
        assert kwargs["kwargs"] == {**PAYLOAD, "first_attempt_at": first_attempt_at}
    assert db.query(DeadLetterJob).count() == 0


def test_eighth_failure_is_dead_lettered(db):
    task = _fake_task(7)
    result = run_with_retry(
        task, INSTAGRAM_EVENTS_POLICY, _lock_busy, PAYLOAD, time.time()
    )

    assert result is None
    task.retry.assert_not_called()
    job = db.query(DeadLetterJob).one()
    assert job.task_name == "app.tasks.fake_task"
    assert job.attempts == 8
    assert job.queue == "high"
    assert job.payload == PAYLOAD
    assert "max attempts" in job.reason
    assert job.first_attempt_at is not None


def test_deadline_dead_letters_early(db):
    task = _fake_task(1)
    run_with_retry(
        task,
        INSTAGRAM_EVENTS_POLICY,
        _lock_busy,
        PAYLOAD,
        time.time() - RETRY_DEADLINE_SECONDS - 1,
    )
    job = db.query(DeadLetterJob).one()
    assert job.attempts == 2
    assert "deadline" in job.reason


def test_other_errors_propagate(db):
    def boom():
        raise ValueError("bad payload")

    with pytest.raises(ValueError):
        run_with_retry(_fake_task(0), INSTAGRAM_EVENTS_POLICY, boom, PAYLOAD, time.time())


@pytest.fixture
def no_adapters():
    with patch(
        "app.services.incoming.base.build_default_registry",
        return_value=ChannelAdapterRegistry(),
    ):
        yield


def _instagram_item():
    return {
        "sender": {"id": "ig_user_1"},
        "recipient": {"id": "ig_account_1"},
        "timestamp": int(time.time() * 1000),
        "message": {"mid": "mid_123", "text": "hi"},
    }


def test_instagram_task_retries_while_thread_locked(
    db, patch_redis, no_adapters, setup_instagram_channel
):
    LockManager(patch_redis).acquire(instagram_lock_key("ig_user_1", "ig_account_1"), 30)

    instagram_events_task.push_request(retries=0)
    try:
        with patch.object(
            instagram_events_task, "retry", side_effect=Retry("retry")
        ) as mock_retry:
            with pytest.raises(Retry):
                instagram_events_task.run(messaging=_instagram_item(), entry_id="e1")
    finally:
        instagram_events_task.pop_request()

    kwargs = mock_retry.call_args.kwargs
    assert kwargs["countdown"] == 1
    assert kwargs["kwargs"]["messaging"]["message"]["mid"] == "mid_123"
    assert kwargs["kwargs"]["first_attempt_at"] is not None


def test_instagram_task_dead_letters_after_eight_attempts(
    db, patch_redis, no_adapters, setup_instagram_channel
):
    LockManager(patch_redis).acquire(instagram_lock_key("ig_user_1", "ig_account_1"), 30)

    instagram_events_task.push_request(retries=7, delivery_info={"routing_key": "high"})
    try:
        instagram_events_task.run(
            messaging=_instagram_item(), entry_id="e1", first_attempt_at=time.time()
        )
    finally:
        instagram_events_task.pop_request()

    job = db.query(DeadLetterJob).one()
    assert job.task_name == "app.tasks.instagram_events_task.instagram_events_task"
    assert job.attempts == 8
    assert job.payload["entry_id"] == "e1"
    assert db.query(Message).count() == 0


def test_instagram_task_processes_event(
    db, patch_redis, no_adapters, setup_instagram_channel
):
    instagram_events_task.run(messaging=_instagram_item(), entry_id="e1")
    assert db.query(Message).filter(Message.source_id == "mid_123").count() == 1


def _send_registry(adapter_result):
    adapter = MagicMock()
    adapter.channel_type = ChannelType.INSTAGRAM
    adapter.capabilities = ChannelCapabilities(send_text=True)
    if isinstance(adapter_result, Exception):
        adapter.send_text.side_effect = adapter_result
    else:
        adapter.send_text.return_value = adapter_result
    registry = ChannelAdapterRegistry()
    registry.register(adapter)
    return registry


@pytest.fixture
def outgoing_message(setup_instagram_channel, make_contact_inbox, make_conversation, make_message):
    conversation = make_conversation(make_contact_inbox(setup_instagram_channel, "ig_user_1"))
    return make_message(conversation, content="hello")


def test_send_reply_task_sends(db, outgoing_message):
    registry = _send_registry(OutboundSendResult(success=True, platform_message_id="m1"))
    with patch(
        "app.commands.outbound.send_reply_command.build_default_registry",
        return_value=registry,
    ):
        assert send_reply_task.run(message_id=str(outgoing_message.id)) == "m1"


def test_send_reply_task_dead_letters_after_three_failures(db, outgoing_message):
    registry = _send_registry(PlatformApiError("upstream down", status_code=503))
    send_reply_task.push_request(retries=2)
    try:
        with patch(
            "app.commands.outbound.send_reply_command.build_default_registry",
            return_value=registry,
        ):
            assert send_reply_task.run(message_id=str(outgoing_message.id)) is None
    finally:
        send_reply_task.pop_request()

    job = db.query(DeadLetterJob).one()
    assert job.attempts == 3
    assert job.payload == {"message_id": str(outgoing_message.id)}
    assert job.account_id == outgoing_message.account_id
    assert job.account_id is not None
    db.refresh(outgoing_message)
    assert outgoing_message.external_error == "upstream down"


@patch("app.services.webhook_notifier.requests.post")
def test_webhook_task_delivers(mock_post, patch_redis):
    mock_post.return_value = MagicMock(status_code=200)
    assert (
        webhook_task.run(
            url="https://hooks.example.com/x",
            payload={"event": "message_created", "id": "m1"},
            event="message_created",
        )
        is True
    )
    mock_post.assert_called_once()


@patch("app.services.webhook_notifier.requests.post")
def test_webhook_task_retries_on_error_status(mock_post, patch_redis):
    mock_post.return_value = MagicMock(status_code=502)
    webhook_task.push_request(retries=0)
    try:
        with patch.object(webhook_task, "retry", side_effect=Retry("retry")) as mock_retry:
            with pytest.raises(Retry):
                webhook_task.run(
                    url="https://hooks.example.com/x",
                    payload={"event": "message_created", "id": "m1"},
                )
    finally:
        webhook_task.pop_request()
    assert mock_retry.call_args.kwargs["countdown"] == 5
