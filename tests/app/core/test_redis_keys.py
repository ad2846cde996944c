"""Tests for Redis key builders."""

import hashlib

from app.constants.inbox import ChannelType
from app.core.redis_keys import (
    facebook_lock_key,
    instagram_lock_key,
    message_source_key,
    reauthorization_required_key,
    webhook_idempotency_key,
    whatsapp_lock_key,
)


def test_lock_keys_are_deterministic():
    assert instagram_lock_key("user", "acct") == "IG_MESSAGE_CREATE_LOCK::user::acct"
    assert facebook_lock_key("psid", "page") == "FB_MESSAGE_CREATE_LOCK::psid::page"
    assert whatsapp_lock_key("a", "b") == "WHATSAPP_MESSAGE_LOCK::a::b"
    assert message_source_key("mid_1") == "MESSAGE_SOURCE_KEY::mid_1"


def test_namespace_prefix():
    assert message_source_key("mid_1", "tenant-a") == "tenant-a:MESSAGE_SOURCE_KEY::mid_1"


def test_reauthorization_key():
    assert (
        reauthorization_required_key(ChannelType.FACEBOOK, 7)
        == "REAUTHORIZATION_REQUIRED:facebook:7"
    )


def test_webhook_key_hashes_url():
    url = "https://hooks.example.com/x"
    digest = hashlib.md5(url.encode()).hexdigest()
    assert webhook_idempotency_key(url, "message_created") == (
        f"webhook:{digest}:message_created"
    )
    assert webhook_idempotency_key(url, "message_created", "m1") == (
        f"webhook:{digest}:message_created:m1"
    )
