"""
Deterministic Redis key builders.

Lock keys are derived from the two conversing external identities so every
event about one external thread contends for the same key, whichever worker
picks it up.
"""

from __future__ import annotations

import hashlib
from typing import Optional

from app.constants.inbox import ChannelType

MESSAGE_SOURCE_KEY = "MESSAGE_SOURCE_KEY::{source_id}"
IG_MESSAGE_CREATE_LOCK = "IG_MESSAGE_CREATE_LOCK::{contact_id}::{account_id}"
FB_MESSAGE_CREATE_LOCK = "FB_MESSAGE_CREATE_LOCK::{contact_id}::{account_id}"
WHATSAPP_MESSAGE_LOCK = "WHATSAPP_MESSAGE_LOCK::{contact_id}::{account_id}"
AUTHORIZATION_ERROR_COUNT = "AUTHORIZATION_ERROR_COUNT:{channel_type}:{channel_id}"
REAUTHORIZATION_REQUIRED = "REAUTHORIZATION_REQUIRED:{channel_type}:{channel_id}"


def _namespaced(key: str, namespace: Optional[str]) -> str:
    return f"{namespace}:{key}" if namespace else key


def message_source_key(source_id: str, namespace: Optional[str] = None) -> str:
    return _namespaced(MESSAGE_SOURCE_KEY.format(source_id=source_id), namespace)


def instagram_lock_key(
    contact_id: str, account_id: str, namespace: Optional[str] = None
) -> str:
    return _namespaced(
        IG_MESSAGE_CREATE_LOCK.format(contact_id=contact_id, account_id=account_id),
        namespace,
    )


def facebook_lock_key(
    contact_id: str, account_id: str, namespace: Optional[str] = None
) -> str:
    return _namespaced(
        FB_MESSAGE_CREATE_LOCK.format(contact_id=contact_id, account_id=account_id),
        namespace,
    )


def whatsapp_lock_key(
    contact_id: str, account_id: str, namespace: Optional[str] = None
) -> str:
    return _namespaced(
        WHATSAPP_MESSAGE_LOCK.format(contact_id=contact_id, account_id=account_id),
        namespace,
    )


def authorization_error_count_key(
    channel_type: ChannelType, channel_id: object, namespace: Optional[str] = None
) -> str:
    return _namespaced(
        AUTHORIZATION_ERROR_COUNT.format(
            channel_type=channel_type.value, channel_id=channel_id
        ),
        namespace,
    )


def reauthorization_required_key(
    channel_type: ChannelType, channel_id: object, namespace: Optional[str] = None
) -> str:
    return _namespaced(
        REAUTHORIZATION_REQUIRED.format(
            channel_type=channel_type.value, channel_id=channel_id
        ),
        namespace,
    )


def webhook_idempotency_key(
    url: str, event: str, resource_id: Optional[object] = None
) -> str:
    """``webhook:<md5(url)>:<event>[:<resource_id>]``."""
    url_hash = hashlib.md5(url.encode("utf-8")).hexdigest()
    key = f"webhook:{url_hash}:{event}"
    if resource_id is not None and str(resource_id) != "":
        key = f"{key}:{resource_id}"
    return key
