"""Tests for WebhookNotifier."""

from unittest.mock import MagicMock, patch

import pytest

from app.exceptions import WebhookDeliveryError
from app.services.webhook_notifier import (
    IDEMPOTENCY_HEADER,
    WebhookNotifier,
    is_valid_url,
    mask_url,
    resource_id_for,
)

URL = "https://hooks.example.com/secret-path"


def _response(status_code):
    resp = MagicMock()
    resp.status_code = status_code
    return resp


def test_helpers():
    assert mask_url(URL) == "https://hooks.example.com/***"
    assert mask_url("not a url") == "***"
    assert is_valid_url(URL)
    assert not is_valid_url("ftp://hooks.example.com")
    assert not is_valid_url(None)
    assert resource_id_for({"id": "m1"}) == "m1"
    assert resource_id_for({"conversation": {"id": "c1"}}) == "c1"
    assert resource_id_for({}) is None


@patch("app.services.webhook_notifier.requests.post")
def test_delivers_once_per_window(mock_post, redis_client):
    mock_post.return_value = _response(200)
    notifier = WebhookNotifier(redis_client)
    payload = {"event": "message_created", "id": "m1"}

    assert notifier.trigger(URL, payload) is True
    assert notifier.trigger(URL, payload) is True

    assert mock_post.call_count == 1
    kwargs = mock_post.call_args.kwargs
    assert kwargs["json"] == payload
    assert kwargs["headers"][IDEMPOTENCY_HEADER].endswith(":message_created:m1")
    assert kwargs["timeout"] == 5


@patch("app.services.webhook_notifier.requests.post")
def test_distinct_resource_ids_are_delivered(mock_post, redis_client):
    mock_post.return_value = _response(204)
    notifier = WebhookNotifier(redis_client)
    payload = {"event": "message_updated", "id": "m1"}

    notifier.trigger(URL, payload, resource_id="m1:1:")
    notifier.trigger(URL, payload, resource_id="m1:2:")
    assert mock_post.call_count == 2


@patch("app.services.webhook_notifier.requests.post")
def test_failed_delivery_is_not_marked(mock_post, redis_client):
    mock_post.return_value = _response(500)
    notifier = WebhookNotifier(redis_client)
    payload = {"event": "message_created", "id": "m1"}

    with pytest.raises(WebhookDeliveryError) as exc:
        notifier.trigger(URL, payload)
    assert exc.value.status_code == 500
    assert "secret-path" not in str(exc.value)

    mock_post.return_value = _response(200)
    assert notifier.trigger(URL, payload) is True
    assert mock_post.call_count == 2


@patch("app.services.webhook_notifier.requests.post")
def test_invalid_url_is_dropped(mock_post, redis_client):
    assert WebhookNotifier(redis_client).trigger("javascript:alert(1)", {"id": 1}) is False
    mock_post.assert_not_called()
