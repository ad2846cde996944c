"""
OutgoingWebhookNotifier: POST internal events to a tenant-configured URL.

Delivery is idempotent per (URL, event, resource id) for the guard's TTL.
The notifier does not retry; failures propagate so the enclosing job's
backoff policy can.
"""

from __future__ import annotations

import logging
from typing import Any, Optional
from urllib.parse import urlparse

import requests
from redis import Redis

from app.config import get_settings
from app.core.idempotency import IdempotencyGuard
from app.core.redis_keys import webhook_idempotency_key
from app.exceptions import WebhookDeliveryError

logger = logging.getLogger(__name__)

IDEMPOTENCY_HEADER = "X-Webhook-Idempotency-Key"


def mask_url(url: str) -> str:
    """Keep scheme and host only; paths often embed secrets."""
    parsed = urlparse(url)
    if not parsed.scheme or not parsed.netloc:
        return "***"
    return f"{parsed.scheme}://{parsed.netloc}/***"


def is_valid_url(url: Optional[str]) -> bool:
    if not url:
        return False
    parsed = urlparse(url)
    return parsed.scheme in ("http", "https") and bool(parsed.hostname)


def resource_id_for(payload: dict[str, Any]) -> Optional[Any]:
    """The payload's own id, else the nested message id, else the conversation id."""
    if payload.get("id") is not None:
        return payload["id"]
    for key in ("message", "conversation"):
        nested = payload.get(key)
        if isinstance(nested, dict) and nested.get("id") is not None:
            return nested["id"]
    return None


class WebhookNotifier:
    def __init__(self, redis_client: Redis, ttl_seconds: Optional[int] = None) -> None:
        settings = get_settings()
        self.guard = IdempotencyGuard(
            redis_client,
            ttl_seconds=ttl_seconds or settings.webhook_idempotency_ttl_seconds,
        )
        self.default_timeout = settings.webhook_timeout_seconds

    def trigger(
        self,
        url: str,
        payload: dict[str, Any],
        event: Optional[str] = None,
        timeout: Optional[int] = None,
        resource_id: Optional[str] = None,
    ) -> bool:
        """
        Deliver ``payload`` to ``url`` at most once per idempotency window.

        ``resource_id`` defaults to the id found in the payload; update events
        pass a revision-specific id so successive changes are all delivered.

        Returns:
            bool: True when delivered now or earlier, False for an invalid URL.

        Raises:
            WebhookDeliveryError: the endpoint answered non-2xx.
            requests.RequestException: timeout or connection failure.
        """
        event = event or str(payload.get("event") or "unknown")
        if not is_valid_url(url):
            logger.warning(
                "Invalid webhook URL for event %s: %s", event, mask_url(url or "")
            )
            return False

        if resource_id is None:
            resource_id = resource_id_for(payload)
        key = webhook_idempotency_key(url, event, resource_id)
        if self.guard.is_done(key):
            logger.info(
                "Duplicate webhook ignored: %s %s (%s)", event, mask_url(url), key
            )
            return True

        resp = requests.post(
            url,
            json=payload,
            headers={
                "Content-Type": "application/json",
                "Accept": "application/json",
                IDEMPOTENCY_HEADER: key,
            },
            timeout=timeout or self.default_timeout,
        )
        if not 200 <= resp.status_code < 300:
            logger.warning(
                "Webhook %s to %s failed with status %s",
                event,
                mask_url(url),
                resp.status_code,
            )
            raise WebhookDeliveryError(mask_url(url), resp.status_code)

        self.guard.mark_done(key)
        logger.info("Webhook %s sent to %s (%s)", event, mask_url(url), resp.status_code)
        return True
