"""Channel registry: which channels exist, whether they are on, and their limits."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from core.config import ChannelConfig, RateLimitConfig
from core.ports import ChannelAdapter


@dataclass(frozen=True)
class ChannelEntry:
    config: ChannelConfig
    adapter: Optional[ChannelAdapter] = None


class ChannelRegistry:
    """Lookup table keyed by channel name, in registration order.

    Unknown names never raise; lookups return False/None so callers can
    filter silently.
    """

    def __init__(self) -> None:
        self._entries: dict[str, ChannelEntry] = {}

    def register(
        self,
        name: str,
        config: Optional[ChannelConfig] = None,
        adapter: Optional[ChannelAdapter] = None,
    ) -> None:
        """Register (or replace) a channel; a replaced entry keeps its position."""

        if config is None:
            config = ChannelConfig(name=name)
        self._entries[name] = ChannelEntry(config=config, adapter=adapter)

    def get(self, name: str) -> Optional[ChannelEntry]:
        return self._entries.get(name)

    def is_enabled(self, name: str) -> bool:
        entry = self.get(name)
        if entry is None or not entry.config.enabled:
            return False
        if entry.adapter is not None and not getattr(entry.adapter, "enabled", True):
            return False
        return True

    def rate_limit_of(self, name: str) -> Optional[RateLimitConfig]:
        entry = self.get(name)
        return entry.config.rate_limit if entry else None

    def adapter_of(self, name: str) -> Optional[ChannelAdapter]:
        entry = self.get(name)
        return entry.adapter if entry else None

    def names(self) -> list[str]:
        return list(self._entries)

    def enabled_channels(self) -> list[str]:
        return [name for name in self._entries if self.is_enabled(name)]

    def __len__(self) -> int:
        return len(self._entries)
