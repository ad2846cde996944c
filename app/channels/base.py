from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class ChannelMeta:
    label: str
    docs: Optional[str] = None


@dataclass(frozen=True)
class ChannelCapabilities:
    """What a channel variant can do. Dispatch checks these instead of the type."""

    send_text: bool = False
    send_attachment: bool = False
    verify_webhook: bool = False
    fetch_profile: bool = False
