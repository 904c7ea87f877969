"""Ports (interfaces) used by the core pipeline.

Ports define the minimal contracts for channel adapters and history storage
so that the core can be reused with different backends.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Iterable, Mapping, Protocol

from core.models import ChannelPreference, HistoryRecord


class ChannelAdapter(Protocol):
    """Delivery operations required from one chat/email service."""

    name: str
    enabled: bool

    async def send(self, text: str, options: Mapping[str, Any]) -> Any:
        """Deliver ``text``; raise on failure."""
        ...

    async def test(self) -> dict[str, Any]:
        """Return ``{"success": bool, "message": str}``."""
        ...


class HistoryStoragePort(Protocol):
    """Persistence for delivery history and learned preferences."""

    def load_history(self, limit: int) -> list[HistoryRecord]:
        ...

    def append_history(self, record: HistoryRecord) -> None:
        ...

    def set_feedback(self, record_id: int, feedback: str) -> None:
        ...

    def delete_history_before(self, cutoff: datetime) -> int:
        ...

    def load_preferences(self) -> Iterable[ChannelPreference]:
        ...

    def save_preference(self, preference: ChannelPreference) -> None:
        ...
