"""Tests for dead-letter routes."""

from unittest.mock import MagicMock, patch
from uuid import uuid4

import pytest
from fastapi.testclient import TestClient

from app.infra.celery_app import celery_app
from app.services.dead_letter_service import DeadLetterService


@pytest.fixture
def setup_dead_letter(db):
    return DeadLetterService(db).record(
        task_name="app.tasks.instagram_events_task.instagram_events_task",
        payload={"messaging": {"sender": {"id": "ig_user_1"}}, "entry_id": "e1"},
        reason="max attempts reached (8): Failed to acquire lock",
        attempts=8,
        queue="high",
    )


def test_list_dead_letters(client: TestClient, setup_dead_letter):
    resp = client.get("/dead-letters")
    assert resp.status_code == 200
    data = resp.json()["data"]
    assert [item["id"] for item in data] == [str(setup_dead_letter.id)]
    assert data[0]["attempts"] == 8
    assert data[0]["resolved_at"] is None


def test_requeue_dead_letter(client: TestClient, setup_dead_letter):
    with patch.object(celery_app, "send_task", return_value=MagicMock(id="task-1")) as send:
        resp = client.post(f"/dead-letters/{setup_dead_letter.id}/requeue")

    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["task_id"] == "task-1"
    assert data["resolved_at"] is not None
    send.assert_called_once_with(
        "app.tasks.instagram_events_task.instagram_events_task",
        kwargs={"messaging": {"sender": {"id": "ig_user_1"}}, "entry_id": "e1"},
        queue="high",
    )

    assert client.get("/dead-letters").json()["data"] == []
    resp = client.post(f"/dead-letters/{setup_dead_letter.id}/requeue")
    assert resp.status_code == 409


def test_requeue_unknown(client: TestClient):
    resp = client.post(f"/dead-letters/{uuid4()}/requeue")
    assert resp.status_code == 404


def test_get_dead_letter(client: TestClient, setup_dead_letter):
    resp = client.get(f"/dead-letters/{setup_dead_letter.id}")
    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["task_name"] == "app.tasks.instagram_events_task.instagram_events_task"
    assert data["queue"] == "high"

    assert client.get(f"/dead-letters/{uuid4()}").status_code == 404
