"""
EventNormalizer: raw per-channel webhook payloads -> ``CanonicalEvent``.

Messenger and Instagram share the ``entry[].messaging[]`` shape (``standby``
for secondary receivers); WhatsApp Cloud API uses ``entry[].changes[].value``.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Iterable, Iterator, Optional

from app.constants.inbox import ChannelType
from app.schemas.events import CanonicalEvent, EventAttachment, EventKind

logger = logging.getLogger(__name__)

INSTAGRAM_SUPPORTED_KINDS = frozenset({EventKind.MESSAGE, EventKind.READ})
FACEBOOK_SUPPORTED_KINDS = frozenset(
    {EventKind.MESSAGE, EventKind.DELIVERY, EventKind.READ}
)

WHATSAPP_MEDIA_TYPES = ("image", "audio", "video", "document", "sticker")


def _str_or_none(value: Any) -> Optional[str]:
    if value is None or value == "":
        return None
    return str(value)


def _from_millis(value: Any) -> Optional[datetime]:
    try:
        return datetime.fromtimestamp(int(value) / 1000, tz=timezone.utc)
    except (TypeError, ValueError):
        return None


def _from_seconds(value: Any) -> Optional[datetime]:
    try:
        return datetime.fromtimestamp(int(value), tz=timezone.utc)
    except (TypeError, ValueError):
        return None


def is_test_event(entry: dict[str, Any]) -> bool:
    """Instagram dashboard test events arrive as ``changes`` instead of ``messaging``."""
    return "changes" in entry and not entry.get("messaging")


def iter_messaging_items(
    body: dict[str, Any],
) -> Iterator[tuple[Optional[str], dict[str, Any]]]:
    """Yield ``(entry_id, messaging_item)`` pairs across every entry of a webhook body."""
    for entry in body.get("entry") or []:
        if not isinstance(entry, dict):
            continue
        items = entry.get("messaging") or entry.get("standby") or []
        for item in items:
            if isinstance(item, dict):
                yield _str_or_none(entry.get("id")), item


def _messaging_kind(item: dict[str, Any]) -> Optional[EventKind]:
    if "message" in item:
        return EventKind.MESSAGE
    if "read" in item:
        return EventKind.READ
    if "delivery" in item:
        return EventKind.DELIVERY
    return None


def _messenger_attachments(message: dict[str, Any]) -> list[EventAttachment]:
    attachments = []
    for raw in message.get("attachments") or []:
        if not isinstance(raw, dict):
            continue
        payload = raw.get("payload") or {}
        coordinates = payload.get("coordinates") or {}
        attachments.append(
            EventAttachment(
                type=str(raw.get("type") or "file"),
                url=_str_or_none(payload.get("url") or raw.get("url")),
                title=_str_or_none(raw.get("title") or payload.get("title")),
                latitude=coordinates.get("lat"),
                longitude=coordinates.get("long"),
                payload=payload,
            )
        )
    return attachments


def normalize_messaging_item(
    platform: ChannelType,
    item: dict[str, Any],
    entry_id: Optional[str] = None,
    supported_kinds: Optional[Iterable[EventKind]] = None,
) -> Optional[CanonicalEvent]:
    """
    Normalize one Messenger/Instagram ``messaging`` item.

    Returns None for event kinds the channel does not process.
    """
    kind = _messaging_kind(item)
    if kind is None:
        return None
    if supported_kinds is not None and kind not in supported_kinds:
        return None

    sender_id = _str_or_none((item.get("sender") or {}).get("id"))
    recipient_id = _str_or_none((item.get("recipient") or {}).get("id"))
    message = item.get("message") or {}
    is_echo = bool(message.get("is_echo"))

    if is_echo:
        account_id, contact_id = sender_id, recipient_id
    else:
        account_id, contact_id = recipient_id, sender_id

    event = CanonicalEvent(
        platform=platform,
        kind=kind,
        sender_id=sender_id,
        recipient_id=recipient_id,
        is_echo=is_echo,
        account_external_id=account_id or entry_id,
        contact_external_id=contact_id,
        entry_id=entry_id,
        timestamp=_from_millis(item.get("timestamp")),
        raw=item,
    )

    if kind == EventKind.MESSAGE:
        event.message_id = _str_or_none(message.get("mid"))
        event.text = message.get("text")
        event.attachments = _messenger_attachments(message)
        event.reply_to_mid = _str_or_none((message.get("reply_to") or {}).get("mid"))
        event.app_id = _str_or_none(message.get("app_id"))
        event.is_deleted = bool(message.get("is_deleted"))
    elif kind == EventKind.READ:
        read = item.get("read") or {}
        event.watermark = _from_millis(read.get("watermark"))
        event.read_mid = _str_or_none(read.get("mid"))
    elif kind == EventKind.DELIVERY:
        delivery = item.get("delivery") or {}
        event.watermark = _from_millis(delivery.get("watermark"))
        event.delivered_mids = [str(mid) for mid in delivery.get("mids") or []]

    return event


def iter_whatsapp_values(body: dict[str, Any]) -> Iterator[dict[str, Any]]:
    """Yield every ``entry[].changes[].value`` object of a WhatsApp webhook body."""
    for entry in body.get("entry") or []:
        if not isinstance(entry, dict):
            continue
        for change in entry.get("changes") or []:
            value = (change or {}).get("value")
            if isinstance(value, dict):
                yield value


def _whatsapp_content(
    message: dict[str, Any],
) -> tuple[Optional[str], list[EventAttachment]]:
    message_type = message.get("type")
    body = message.get(message_type) if message_type else None
    body = body if isinstance(body, dict) else {}

    if message_type == "text":
        return body.get("body"), []
    if message_type in WHATSAPP_MEDIA_TYPES:
        attachment = EventAttachment(
            type="file" if message_type in ("document", "sticker") else message_type,
            media_id=_str_or_none(body.get("id")),
            mime_type=body.get("mime_type"),
            title=body.get("filename"),
            url=_str_or_none(body.get("url") or body.get("link")),
            payload=body,
        )
        return body.get("caption"), [attachment]
    if message_type == "location":
        attachment = EventAttachment(
            type="location",
            title=body.get("name") or body.get("address"),
            latitude=body.get("latitude"),
            longitude=body.get("longitude"),
            payload=body,
        )
        return None, [attachment]
    if message_type == "contacts":
        contacts = message.get("contacts") or []
        attachments = [
            EventAttachment(
                type="contact",
                title=((c.get("name") or {}).get("formatted_name")),
                payload=c,
            )
            for c in contacts
            if isinstance(c, dict)
        ]
        return None, attachments
    if message_type == "button":
        return body.get("text"), []
    if message_type == "interactive":
        reply = body.get("button_reply") or body.get("list_reply") or {}
        return reply.get("title"), []
    return None, [EventAttachment(type="unsupported_type", payload=message)]


def normalize_whatsapp_value(value: dict[str, Any]) -> list[CanonicalEvent]:
    """Normalize a WhatsApp Cloud ``value`` into message and status events."""
    metadata = value.get("metadata") or {}
    phone_number_id = _str_or_none(metadata.get("phone_number_id"))
    display_phone_number = _str_or_none(metadata.get("display_phone_number"))
    account_id = f"+{display_phone_number.lstrip('+')}" if display_phone_number else None

    profile_names = {
        str(c.get("wa_id")): (c.get("profile") or {}).get("name")
        for c in value.get("contacts") or []
        if isinstance(c, dict)
    }

    events: list[CanonicalEvent] = []
    for message in value.get("messages") or []:
        if not isinstance(message, dict):
            continue
        sender_id = _str_or_none(message.get("from"))
        text, attachments = _whatsapp_content(message)
        events.append(
            CanonicalEvent(
                platform=ChannelType.WHATSAPP,
                kind=EventKind.MESSAGE,
                sender_id=sender_id,
                recipient_id=phone_number_id,
                message_id=_str_or_none(message.get("id")),
                account_external_id=account_id,
                contact_external_id=sender_id,
                timestamp=_from_seconds(message.get("timestamp")),
                text=text,
                attachments=attachments,
                reply_to_mid=_str_or_none((message.get("context") or {}).get("id")),
                profile_name=profile_names.get(sender_id or ""),
                phone_number_id=phone_number_id,
                display_phone_number=display_phone_number,
                raw=message,
            )
        )

    for status in value.get("statuses") or []:
        if not isinstance(status, dict):
            continue
        recipient = _str_or_none(status.get("recipient_id"))
        events.append(
            CanonicalEvent(
                platform=ChannelType.WHATSAPP,
                kind=EventKind.STATUS,
                sender_id=phone_number_id,
                recipient_id=recipient,
                message_id=_str_or_none(status.get("id")),
                account_external_id=account_id,
                contact_external_id=recipient,
                timestamp=_from_seconds(status.get("timestamp")),
                status=status.get("status"),
                errors=status.get("errors") or [],
                phone_number_id=phone_number_id,
                display_phone_number=display_phone_number,
                raw=status,
            )
        )

    return events
