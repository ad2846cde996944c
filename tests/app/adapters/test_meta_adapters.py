"""Tests for the Instagram, Messenger, WhatsApp and web widget adapters."""

import hashlib
import hmac
from unittest.mock import MagicMock, patch

import pytest

from app.adapters import FacebookAdapter, InstagramAdapter, WebWidgetAdapter, WhatsAppAdapter
from app.adapters.base import verify_signature, verify_subscription
from app.core.registry import build_default_registry
from app.constants.inbox import ChannelType
from app.exceptions import ChannelConfigurationError, PlatformApiError
from app.models.channel import InstagramChannel


def _response(status_code=200, body=None):
    resp = MagicMock()
    resp.status_code = status_code
    resp.json.return_value = body if body is not None else {}
    resp.text = ""
    return resp


def test_verify_subscription():
    assert verify_subscription("subscribe", "t", "t") is True
    assert verify_subscription("unsubscribe", "t", "t") is False
    assert verify_subscription("subscribe", "t", None) is False
    assert verify_subscription("subscribe", None, "t") is False


def test_verify_signature():
    body = b'{"object":"page"}'
    digest = hmac.new(b"secret", body, hashlib.sha256).hexdigest()
    assert verify_signature(body, f"sha256={digest}", "secret") is True
    assert verify_signature(body, f"sha256={digest}", "other") is False
    assert verify_signature(body, None, "secret") is False
    assert verify_signature(body, None, None) is True


def test_default_registry_covers_every_channel_type():
    registry = build_default_registry()
    assert {a.channel_type for a in registry.list_adapters()} == set(ChannelType)
    with pytest.raises(ValueError):
        registry.register(InstagramAdapter())


@patch("app.adapters.meta_graph.requests.post")
def test_instagram_send_text(mock_post, setup_instagram_channel):
    mock_post.return_value = _response(body={"recipient_id": "u", "message_id": "m1"})

    result = InstagramAdapter().send_text(setup_instagram_channel, "ig_user_1", "hi")

    assert result.platform_message_id == "m1"
    url = mock_post.call_args.args[0]
    assert url == "https://graph.instagram.com/v22.0/ig_account_1/messages"
    kwargs = mock_post.call_args.kwargs
    assert kwargs["json"]["recipient"] == {"id": "ig_user_1"}
    assert kwargs["json"]["message"] == {"text": "hi"}
    assert kwargs["headers"]["Authorization"] == (
        f"Bearer {setup_instagram_channel.access_token}"
    )


@patch("app.adapters.meta_graph.requests.post")
def test_graph_error_body_raises(mock_post, setup_instagram_channel):
    mock_post.return_value = _response(
        400, {"error": {"message": "Session has expired", "code": 190}}
    )
    with pytest.raises(PlatformApiError) as exc:
        InstagramAdapter().send_text(setup_instagram_channel, "ig_user_1", "hi")
    assert exc.value.status_code == 400
    assert exc.value.is_authorization_error


def test_instagram_without_token(account_id):
    channel = InstagramChannel(
        account_id=account_id, channel_type=ChannelType.INSTAGRAM.value
    )
    with pytest.raises(ChannelConfigurationError):
        InstagramAdapter().send_text(channel, "ig_user_1", "hi")


def test_unsupported_attachment_type(setup_instagram_channel):
    with pytest.raises(ValueError):
        InstagramAdapter().send_attachment(
            setup_instagram_channel, "ig_user_1", "sticker", "https://x"
        )


@patch("app.adapters.meta_graph.requests.get")
def test_facebook_fetch_profile(mock_get, setup_facebook_channel):
    mock_get.return_value = _response(
        body={
            "id": "psid_1",
            "first_name": "Ana",
            "last_name": "Ruiz",
            "profile_pic": "https://p",
        }
    )
    profile = FacebookAdapter().fetch_profile(setup_facebook_channel, "psid_1")
    assert profile == {
        "name": "Ana Ruiz",
        "avatar_url": "https://p",
        "page_scoped_id": "psid_1",
    }
    assert mock_get.call_args.args[0] == "https://graph.facebook.com/v22.0/psid_1"


@patch("app.adapters.meta_graph.requests.post")
def test_facebook_send_attachment(mock_post, setup_facebook_channel):
    mock_post.return_value = _response(body={"message_id": "m_att"})
    result = FacebookAdapter().send_attachment(
        setup_facebook_channel, "psid_1", "image", "https://cdn.example.com/a.png"
    )
    assert result.platform_message_id == "m_att"
    assert mock_post.call_args.args[0].endswith("/page_1/messages")
    assert mock_post.call_args.kwargs["json"]["message"]["attachment"] == {
        "type": "image",
        "payload": {"url": "https://cdn.example.com/a.png"},
    }


@patch("app.adapters.meta_graph.requests.post")
def test_whatsapp_send(mock_post, setup_whatsapp_channel):
    mock_post.return_value = _response(body={"messages": [{"id": "wamid.out"}]})
    adapter = WhatsAppAdapter()

    result = adapter.send_text(setup_whatsapp_channel, "15551234567", "hola")
    assert result.platform_message_id == "wamid.out"
    assert mock_post.call_args.args[0].endswith("/pnid_1/messages")
    assert mock_post.call_args.kwargs["json"] == {
        "messaging_product": "whatsapp",
        "to": "15551234567",
        "type": "text",
        "text": {"body": "hola"},
    }

    adapter.send_attachment(setup_whatsapp_channel, "15551234567", "file", "https://d")
    assert mock_post.call_args.kwargs["json"]["type"] == "document"


def test_whatsapp_verify_uses_channel_token(setup_whatsapp_channel):
    adapter = WhatsAppAdapter()
    assert adapter.verify_webhook(setup_whatsapp_channel, "subscribe", "wa-verify-token")
    assert not adapter.verify_webhook(None, "subscribe", "wa-verify-token")


def test_web_widget_identity(db, setup_web_widget_channel):
    adapter = WebWidgetAdapter()
    assert adapter.capabilities.send_text is False
    # No hmac token configured: identity is not enforced
    assert adapter.verify_identity(setup_web_widget_channel, "user-1", None)

    setup_web_widget_channel.set_credentials({"hmac_token": "widget-secret"})
    db.commit()
    digest = hmac.new(b"widget-secret", b"user-1", hashlib.sha256).hexdigest()
    assert adapter.verify_identity(setup_web_widget_channel, "user-1", digest)
    assert not adapter.verify_identity(setup_web_widget_channel, "user-1", "bad")
    assert not adapter.verify_identity(setup_web_widget_channel, "user-1", None)
