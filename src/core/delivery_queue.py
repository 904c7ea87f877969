"""FIFO of notification/channel pairs deferred by rate limiting."""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from core.models import Notification


@dataclass
class QueuedItem:
    notification: Notification
    channels: tuple[str, ...]
    enqueued_at: datetime
    attempts: int = 0


class DeliveryQueue:
    """Best-effort FIFO; items are only ever re-queued, never dropped."""

    def __init__(self) -> None:
        self._items: deque[QueuedItem] = deque()

    def __len__(self) -> int:
        return len(self._items)

    def enqueue(self, notification: Notification, channels: tuple[str, ...], now: datetime) -> QueuedItem:
        item = QueuedItem(notification=notification, channels=channels, enqueued_at=now)
        self._items.append(item)
        return item

    def pop(self) -> Optional[QueuedItem]:
        return self._items.popleft() if self._items else None

    def requeue(self, item: QueuedItem) -> None:
        item.attempts += 1
        self._items.append(item)

    def items(self) -> list[QueuedItem]:
        return list(self._items)
