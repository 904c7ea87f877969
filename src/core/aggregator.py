"""Notification aggregation.

Similar notifications arriving within a window are merged into one summary.
Groups are flushed when full (on ``offer``) or when their window elapses
(on ``due``, called from the periodic tick). Every offered notification ends
up in exactly one flushed group; ``flush_all`` drains the rest at shutdown.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta
from typing import List, Optional

from core.config import AggregationConfig
from core.models import Notification
from core.similarity import similarity

LOGGER = logging.getLogger(__name__)


@dataclass
class PendingAggregationGroup:
    representative: Notification
    window_started_at: datetime
    members: List[Notification] = field(default_factory=list)


@dataclass(frozen=True)
class Offer:
    """``held`` is False when the caller should route the notification itself.

    ``summary`` is set when this offer filled a group and flushed it.
    """

    held: bool
    summary: Optional[Notification] = None
    group_size: int = 0


def summarize(group: PendingAggregationGroup) -> Notification:
    """Collapse a group into one notification; a lone member passes through."""

    count = len(group.members)
    if count == 1:
        return group.members[0]
    representative = group.representative
    text = (
        f"📦 Aggregated notification ({count})\n\n"
        f"{representative.text}\n\n"
        f"... and {count - 1} more similar"
    )
    return replace(representative, text=text, aggregated=True, count=count)


class Aggregator:
    def __init__(self, config: AggregationConfig) -> None:
        self._config = config
        self._groups: List[PendingAggregationGroup] = []

    def __len__(self) -> int:
        return len(self._groups)

    def pending_count(self) -> int:
        return sum(len(group.members) for group in self._groups)

    def _best_group(self, notification: Notification) -> Optional[PendingAggregationGroup]:
        best: Optional[PendingAggregationGroup] = None
        best_score = -1.0
        for group in self._groups:
            score = similarity(notification.text, group.representative.text)
            # Strict comparison keeps ties on the oldest group.
            if score >= self._config.similarity_threshold and score > best_score:
                best, best_score = group, score
        return best

    def offer(self, notification: Notification, now: datetime) -> Offer:
        if not self._config.enabled or notification.aggregated:
            return Offer(held=False)

        group = self._best_group(notification)
        if group is None:
            group = PendingAggregationGroup(representative=notification, window_started_at=now)
            self._groups.append(group)
        group.members.append(notification)

        if len(group.members) >= self._config.max_size:
            self._groups.remove(group)
            LOGGER.info("Aggregation group full (%s), flushing", len(group.members))
            return Offer(held=True, summary=summarize(group), group_size=len(group.members))
        return Offer(held=True, group_size=len(group.members))

    def due(self, now: datetime) -> List[Notification]:
        """Flush every group whose window has elapsed."""

        window = timedelta(milliseconds=self._config.window_ms)
        expired = [group for group in self._groups if now - group.window_started_at >= window]
        for group in expired:
            self._groups.remove(group)
        return [summarize(group) for group in expired]

    def flush_all(self) -> List[Notification]:
        groups, self._groups = self._groups, []
        return [summarize(group) for group in groups]
