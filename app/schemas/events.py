"""
Canonical inbound event contract.

Every per-channel webhook payload is normalized into ``CanonicalEvent`` before
any lookup or persistence happens.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field

from app.constants.inbox import ChannelType


class EventKind(str, Enum):
    MESSAGE = "message"
    READ = "read"
    DELIVERY = "delivery"
    STATUS = "status"


class EventAttachment(BaseModel):
    """One attachment as the platform described it."""

    type: str
    url: Optional[str] = None
    title: Optional[str] = None
    mime_type: Optional[str] = None
    media_id: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    payload: dict[str, Any] = Field(default_factory=dict)


class CanonicalEvent(BaseModel):
    """
    Normalized platform event.

    ``account_external_id`` is the tenant's own platform account: the sender
    for echoes, the recipient otherwise. ``contact_external_id`` is the other
    side of the thread.
    """

    platform: ChannelType
    kind: EventKind
    sender_id: Optional[str] = None
    recipient_id: Optional[str] = None
    message_id: Optional[str] = None
    is_echo: bool = False
    account_external_id: Optional[str] = None
    contact_external_id: Optional[str] = None
    entry_id: Optional[str] = None
    timestamp: Optional[datetime] = None
    text: Optional[str] = None
    attachments: list[EventAttachment] = Field(default_factory=list)
    reply_to_mid: Optional[str] = None
    app_id: Optional[str] = None
    is_deleted: bool = False
    watermark: Optional[datetime] = None
    read_mid: Optional[str] = None
    delivered_mids: list[str] = Field(default_factory=list)
    # WhatsApp only
    status: Optional[str] = None
    errors: list[dict[str, Any]] = Field(default_factory=list)
    profile_name: Optional[str] = None
    phone_number_id: Optional[str] = None
    display_phone_number: Optional[str] = None
    raw: dict[str, Any] = Field(default_factory=dict)

    @property
    def has_content(self) -> bool:
        return bool(self.text) or bool(self.attachments)


class OutboundSendResult(BaseModel):
    """Result of sending one outbound payload (text or attachment)."""

    success: bool
    platform_message_id: Optional[str] = None
