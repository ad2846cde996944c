from __future__ import annotations

from typing import Dict

from app.adapters import (
    BasePlatformAdapter,
    FacebookAdapter,
    InstagramAdapter,
    WebWidgetAdapter,
    WhatsAppAdapter,
)
from app.constants.inbox import ChannelType


class ChannelAdapterRegistry:
    """Adapters keyed by channel variant."""

    def __init__(self) -> None:
        self._adapters: Dict[ChannelType, BasePlatformAdapter] = {}

    def register(self, adapter: BasePlatformAdapter) -> None:
        if adapter.channel_type in self._adapters:
            raise ValueError(f"Adapter already registered: {adapter.channel_type}")
        self._adapters[adapter.channel_type] = adapter

    def get(self, channel_type: ChannelType) -> BasePlatformAdapter | None:
        return self._adapters.get(ChannelType(channel_type))

    def list_adapters(self) -> list[BasePlatformAdapter]:
        return list(self._adapters.values())


def build_default_registry() -> ChannelAdapterRegistry:
    registry = ChannelAdapterRegistry()
    registry.register(InstagramAdapter())
    registry.register(FacebookAdapter())
    registry.register(WhatsAppAdapter())
    registry.register(WebWidgetAdapter())
    return registry
