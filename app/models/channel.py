"""
Channel model: a tagged variant over the supported messaging integrations.

Single-table inheritance keyed on ``channel_type``. Each variant exposes the
platform id used to route inbound events and its own decrypted credentials.
"""

from __future__ import annotations

import uuid
from typing import Any, Dict, Optional

from sqlalchemy import Column, Index, LargeBinary, String, Uuid
from sqlalchemy.orm import relationship

from app.constants.inbox import ChannelType, SetupState
from app.core.credentials import (
    decrypt_credential_fields,
    encrypt_credential_fields,
    validate_credential_fields,
)
from app.db import Base, JSONType
from app.models.mixins import TimestampMixin


class Channel(Base, TimestampMixin):
    """Base row for every channel variant. Never instantiated directly."""

    __tablename__ = "channels"

    __table_args__ = (
        Index("ix_channels_type_instagram_id", "channel_type", "instagram_id"),
        Index("ix_channels_type_page_id", "channel_type", "page_id"),
        Index("ix_channels_type_phone_number", "channel_type", "phone_number"),
    )

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    account_id = Column(Uuid(as_uuid=True), nullable=False, index=True)
    channel_type = Column(String(32), nullable=False)
    setup_state = Column(String(32), nullable=False, default=SetupState.ACTIVE.value)
    instagram_id = Column(String(255), nullable=True)
    page_id = Column(String(255), nullable=True)
    phone_number = Column(String(32), nullable=True)
    website_token = Column(String(255), nullable=True, unique=True)
    webhook_url = Column(String(2048), nullable=True)
    provider = Column(String(32), nullable=True)
    provider_config = Column(JSONType, nullable=False, default=dict)
    encrypted_credentials = Column(LargeBinary, nullable=True)

    inbox = relationship("Inbox", back_populates="channel", uselist=False)

    __mapper_args__ = {"polymorphic_on": channel_type}

    @property
    def type(self) -> ChannelType:
        return ChannelType(self.channel_type)

    @property
    def is_pending_setup(self) -> bool:
        return self.setup_state == SetupState.PENDING_SETUP.value

    @property
    def external_account_id(self) -> Optional[str]:
        """Platform-assigned id that inbound events are routed by."""
        return None

    def get_credentials(self) -> Dict[str, Any]:
        if not self.encrypted_credentials:
            return {}
        return decrypt_credential_fields(self.encrypted_credentials)

    def set_credentials(self, fields: Dict[str, Any]) -> None:
        validate_credential_fields(self.channel_type, fields)
        self.encrypted_credentials = encrypt_credential_fields(fields)


class InstagramChannel(Channel):
    __mapper_args__ = {"polymorphic_identity": ChannelType.INSTAGRAM.value}

    @property
    def external_account_id(self) -> Optional[str]:
        return self.instagram_id

    @property
    def access_token(self) -> Optional[str]:
        return self.get_credentials().get("access_token")


class FacebookChannel(Channel):
    """Facebook page. May also carry the Instagram account linked to the page."""

    __mapper_args__ = {"polymorphic_identity": ChannelType.FACEBOOK.value}

    @property
    def external_account_id(self) -> Optional[str]:
        return self.page_id

    @property
    def page_access_token(self) -> Optional[str]:
        return self.get_credentials().get("page_access_token")


class WhatsAppChannel(Channel):
    __mapper_args__ = {"polymorphic_identity": ChannelType.WHATSAPP.value}

    @property
    def external_account_id(self) -> Optional[str]:
        return self.phone_number

    @property
    def phone_number_id(self) -> Optional[str]:
        return (self.provider_config or {}).get("phone_number_id")

    @property
    def webhook_verify_token(self) -> Optional[str]:
        return (self.provider_config or {}).get("webhook_verify_token")

    @property
    def api_key(self) -> Optional[str]:
        return self.get_credentials().get("api_key")


class WebWidgetChannel(Channel):
    __mapper_args__ = {"polymorphic_identity": ChannelType.WEB_WIDGET.value}

    @property
    def external_account_id(self) -> Optional[str]:
        return self.website_token

    @property
    def hmac_token(self) -> Optional[str]:
        return self.get_credentials().get("hmac_token")


CHANNEL_CLASSES: dict[ChannelType, type[Channel]] = {
    ChannelType.INSTAGRAM: InstagramChannel,
    ChannelType.FACEBOOK: FacebookChannel,
    ChannelType.WHATSAPP: WhatsAppChannel,
    ChannelType.WEB_WIDGET: WebWidgetChannel,
}
