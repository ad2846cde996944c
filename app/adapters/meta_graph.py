"""
Minimal Graph API client shared by the Instagram, Facebook and WhatsApp adapters.

Uses ``requests`` with a bounded timeout. Non-2xx responses and 200 responses
with an ``error`` body both raise ``PlatformApiError`` carrying the Graph
error code (190 means the access token is no longer valid).
"""

from __future__ import annotations

from typing import Any, Optional

import requests

from app.exceptions import PlatformApiError
from app.infra.logging_config import get_logger

logger = get_logger("meta_graph")

FACEBOOK_GRAPH_BASE_URL = "https://graph.facebook.com"
INSTAGRAM_GRAPH_BASE_URL = "https://graph.instagram.com"
DEFAULT_TIMEOUT_SECONDS = 30


class GraphApiClient:
    def __init__(
        self,
        access_token: str,
        base_url: str = FACEBOOK_GRAPH_BASE_URL,
        api_version: str = "v22.0",
        timeout: int = DEFAULT_TIMEOUT_SECONDS,
    ) -> None:
        self.access_token = access_token
        self.base_url = base_url.rstrip("/")
        self.api_version = api_version
        self.timeout = timeout

    def _url(self, path: str) -> str:
        return f"{self.base_url}/{self.api_version}/{path.lstrip('/')}"

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self.access_token}",
            "Accept": "application/json",
        }

    def post(self, path: str, payload: dict[str, Any], error_message: str) -> dict:
        resp = requests.post(
            self._url(path),
            json=payload,
            headers=self._headers(),
            timeout=self.timeout,
        )
        return self._handle_response(resp, error_message)

    def get(
        self,
        path: str,
        params: Optional[dict[str, Any]],
        error_message: str,
    ) -> dict:
        resp = requests.get(
            self._url(path),
            params=params,
            headers=self._headers(),
            timeout=self.timeout,
        )
        return self._handle_response(resp, error_message)

    def _handle_response(self, resp: requests.Response, error_message: str) -> dict:
        try:
            data = resp.json()
        except ValueError:
            data = {}
        if not isinstance(data, dict):
            data = {}

        error = data.get("error") if isinstance(data.get("error"), dict) else None
        if resp.status_code >= 400 or error:
            error = error or {}
            code = error.get("code")
            detail = error.get("message") or (resp.text or "")[:500] or error_message
            message = f"{error_message}: {detail} (Code: {code})"
            logger.error("Graph API error %s: %s", resp.status_code, message)
            try:
                error_code = int(code) if code is not None else None
            except (TypeError, ValueError):
                error_code = None
            raise PlatformApiError(
                message, status_code=resp.status_code, error_code=error_code
            )
        return data
