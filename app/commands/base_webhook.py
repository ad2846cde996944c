"""
Base command for platform webhook endpoints.

Provides the subscription handshake, the ``X-Hub-Signature-256`` check and
JSON body parsing shared by the Instagram, Messenger and WhatsApp commands.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Mapping, Optional

from fastapi import HTTPException
from sqlalchemy.orm import Session

from app.adapters.base import BasePlatformAdapter, verify_signature
from app.config import get_settings
from app.constants.inbox import ChannelType
from app.core.registry import ChannelAdapterRegistry, build_default_registry
from app.models.channel import Channel

SIGNATURE_HEADER = "x-hub-signature-256"


def _param(params: Mapping[str, str], name: str) -> Optional[str]:
    """Meta sends ``hub.mode``; some proxies rewrite it to ``hub_mode``."""
    return params.get(f"hub.{name}") or params.get(f"hub_{name}")


class BaseWebhookCommand:
    """
    Base for webhook commands.
    Subclasses set ``channel_type`` and implement ``execute``.
    """

    channel_type: ChannelType

    def __init__(
        self, db: Session, registry: Optional[ChannelAdapterRegistry] = None
    ) -> None:
        self.db = db
        self.settings = get_settings()
        self.registry = registry or build_default_registry()
        self.logger = logging.getLogger(__name__)

    @property
    def adapter(self) -> BasePlatformAdapter:
        adapter = self.registry.get(self.channel_type)
        if adapter is None or not adapter.capabilities.verify_webhook:
            raise HTTPException(
                status_code=404,
                detail=f"Channel {self.channel_type.value} is not supported",
            )
        return adapter

    def verify_subscription(
        self, params: Mapping[str, str], channel: Optional[Channel] = None
    ) -> str:
        """
        Answer the platform's subscription handshake.

        Returns:
            str: the ``hub.challenge`` to echo back.

        Raises:
            HTTPException: 403 if the mode or verify token does not match.
        """
        mode = _param(params, "mode")
        token = _param(params, "verify_token")
        if not self.adapter.verify_webhook(channel, mode, token):
            self.logger.warning(
                "%s webhook verification failed", self.channel_type.value
            )
            raise HTTPException(status_code=403, detail="Verification failed")
        return _param(params, "challenge") or ""

    def verify_request_signature(
        self, raw_body: bytes, headers: Mapping[str, str]
    ) -> None:
        """Raises HTTPException 403 when the body signature is missing or wrong."""
        signature = headers.get(SIGNATURE_HEADER) or headers.get("X-Hub-Signature-256")
        if not verify_signature(raw_body, signature, self.settings.meta_app_secret):
            raise HTTPException(status_code=403, detail="Invalid signature")

    def parse_body(self, raw_body: bytes) -> dict[str, Any]:
        try:
            body = json.loads(raw_body or b"null")
        except ValueError as e:
            self.logger.warning(
                "%s webhook invalid JSON: %s", self.channel_type.value, e
            )
            raise HTTPException(status_code=400, detail="Invalid JSON body") from e
        if not isinstance(body, dict):
            raise HTTPException(status_code=400, detail="Body must be a JSON object")
        return body
