"""Tests for outbound routes."""

from unittest.mock import patch
from uuid import uuid4

import pytest
from fastapi.testclient import TestClient

from app.constants.inbox import MessageStatus, MessageType
from app.infra.celery_app import QUEUE_HIGH


@pytest.fixture
def conversation(setup_instagram_channel, make_contact_inbox, make_conversation):
    return make_conversation(make_contact_inbox(setup_instagram_channel, "ig_user_1"))


@patch("app.routers.outbound.send_reply_task")
def test_send_queues_message(mock_task, client: TestClient, conversation, make_message):
    message = make_message(conversation, content="hello")
    resp = client.post(f"/outbound/messages/{message.id}/send")

    assert resp.status_code == 202
    assert resp.json() == {"data": {"message_id": str(message.id), "queued": True}}
    mock_task.apply_async.assert_called_once_with(
        kwargs={"message_id": str(message.id)}, queue=QUEUE_HIGH
    )


@patch("app.routers.outbound.send_reply_task")
def test_already_sent_is_not_queued(mock_task, client: TestClient, conversation, make_message):
    message = make_message(conversation, status=MessageStatus.SENT, source_id="m1")
    resp = client.post(f"/outbound/messages/{message.id}/send")

    assert resp.status_code == 202
    assert resp.json()["data"]["queued"] is False
    mock_task.apply_async.assert_not_called()


@patch("app.routers.outbound.send_reply_task")
def test_incoming_message_rejected(mock_task, client: TestClient, conversation, make_message):
    message = make_message(conversation, message_type=MessageType.INCOMING, source_id="mid")
    resp = client.post(f"/outbound/messages/{message.id}/send")
    assert resp.status_code == 400


def test_unknown_message(client: TestClient):
    resp = client.post(f"/outbound/messages/{uuid4()}/send")
    assert resp.status_code == 404
