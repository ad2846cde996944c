"""Domain exceptions shared by the ingestion and dispatch pipeline."""

from __future__ import annotations

from typing import Optional


class LockAcquisitionFailure(Exception):
    """The per-thread lock is held by another worker. Retryable."""

    def __init__(self, key: str) -> None:
        super().__init__(f"Failed to acquire lock: {key}")
        self.key = key


class ChannelConfigurationError(Exception):
    """Channel is missing credentials or required provider config. Not retryable."""


class PlatformApiError(Exception):
    """A platform API call failed (non-2xx or an error body)."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        error_code: Optional[int] = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.error_code = error_code

    @property
    def is_authorization_error(self) -> bool:
        # Graph API code 190: access token expired or invalid
        return self.error_code == 190


class WebhookDeliveryError(Exception):
    """Tenant webhook endpoint answered with a non-2xx status."""

    def __init__(self, url: str, status_code: int) -> None:
        super().__init__(f"Webhook delivery failed with status {status_code}: {url}")
        self.status_code = status_code
