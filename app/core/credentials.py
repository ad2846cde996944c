"""Validation and Fernet encryption of channel credentials stored at rest."""

from __future__ import annotations

import json
from typing import Any, Dict, Optional, Type

from cryptography.fernet import Fernet
from pydantic import BaseModel

from app.config import get_settings
from app.constants.inbox import ChannelType


def _get_fernet() -> Fernet:
    """Get a Fernet instance with the credential master key."""
    settings = get_settings()
    key = settings.credential_master_key or settings.fernet_key
    if not key:
        raise ValueError(
            "CREDENTIAL_MASTER_KEY or FERNET_KEY must be set for credential encryption"
        )
    return Fernet(key.encode() if isinstance(key, str) else key)


def _encrypt_value(value: bytes) -> bytes:
    """Encrypt a value using the master key."""
    return _get_fernet().encrypt(value)


def _decrypt_value(value: bytes) -> bytes:
    """Decrypt a value using the master key."""
    return _get_fernet().decrypt(value)


class InstagramCredentials(BaseModel):
    access_token: str


class FacebookCredentials(BaseModel):
    page_access_token: str
    user_access_token: Optional[str] = None


class WhatsAppCredentials(BaseModel):
    api_key: str


class WebWidgetCredentials(BaseModel):
    hmac_token: Optional[str] = None


credential_models: Dict[ChannelType, Type[BaseModel]] = {
    ChannelType.INSTAGRAM: InstagramCredentials,
    ChannelType.FACEBOOK: FacebookCredentials,
    ChannelType.WHATSAPP: WhatsAppCredentials,
    ChannelType.WEB_WIDGET: WebWidgetCredentials,
}


def validate_credential_fields(channel_type: str, fields: Dict[str, Any]) -> None:
    """Validate credential fields against the model for the channel type."""
    try:
        ctype = ChannelType(channel_type)
    except ValueError:
        raise ValueError(f"Unknown channel type: {channel_type}") from None

    model = credential_models[ctype]
    try:
        model(**fields)
    except Exception as e:
        raise ValueError(f"Invalid credential fields: {str(e)}") from e


def encrypt_credential_fields(fields: Dict[str, Any]) -> bytes:
    """Encrypt credential fields."""
    plaintext = json.dumps(fields).encode()
    return _encrypt_value(plaintext)


def decrypt_credential_fields(encrypted_data: bytes) -> Dict[str, Any]:
    """Decrypt credential fields."""
    plaintext = _decrypt_value(encrypted_data)
    return json.loads(plaintext)
