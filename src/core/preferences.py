"""Delivery history and channel preference scoring.

This is a frequency heuristic over a bounded history, not a model: given the
same history and inputs, ``rank`` always returns the same order.
"""

from __future__ import annotations

import itertools
import logging
from collections import deque
from datetime import datetime
from typing import Iterable, List, Optional, Sequence

from core.config import LearningConfig, TimeRange
from core.dnd import clock_time, is_in_time_range
from core.models import ChannelPreference, HistoryRecord, Notification
from core.similarity import similarity

LOGGER = logging.getLogger(__name__)

FEEDBACK_VALUES = ("positive", "negative")


class DeliveryHistory:
    """Fixed-capacity ring buffer of HistoryRecords; the oldest is evicted first."""

    def __init__(self, capacity: int) -> None:
        self._records: deque[HistoryRecord] = deque(maxlen=capacity)
        self._ids = itertools.count(1)

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self):
        return iter(self._records)

    def append(self, timestamp: datetime, text: str, channels: Iterable[str]) -> HistoryRecord:
        record = HistoryRecord(
            record_id=next(self._ids),
            timestamp=timestamp,
            text=text,
            channels=tuple(channels),
        )
        self._records.append(record)
        return record

    def restore(self, records: Iterable[HistoryRecord]) -> None:
        """Load persisted records (oldest first) and continue ids after them."""

        last_id = 0
        for record in records:
            self._records.append(record)
            last_id = max(last_id, record.record_id)
        self._ids = itertools.count(last_id + 1)

    def get(self, record_id: int) -> Optional[HistoryRecord]:
        for record in self._records:
            if record.record_id == record_id:
                return record
        return None

    def attach_feedback(self, record_id: int, feedback: str) -> Optional[HistoryRecord]:
        if feedback not in FEEDBACK_VALUES:
            raise ValueError(f"feedback must be one of {FEEDBACK_VALUES}, got {feedback!r}")
        record = self.get(record_id)
        if record is not None:
            record.feedback = feedback
        return record

    def with_feedback(self) -> List[HistoryRecord]:
        return [record for record in self._records if record.feedback is not None]

    def prune(self, cutoff: datetime) -> int:
        """Drop records older than ``cutoff``; return how many were removed."""

        removed = 0
        while self._records and self._records[0].timestamp < cutoff:
            self._records.popleft()
            removed += 1
        return removed


class PreferenceScorer:
    def __init__(
        self,
        config: LearningConfig,
        history: DeliveryHistory,
        silent_channels: Sequence[str] = ("email",),
        night_hours: TimeRange = TimeRange("22:00", "07:00"),
    ) -> None:
        self._config = config
        self._history = history
        self._silent_channels = frozenset(silent_channels)
        self._night_hours = night_hours
        self._preferences: dict[str, ChannelPreference] = {}

    @property
    def preferences(self) -> dict[str, ChannelPreference]:
        return self._preferences

    def restore(self, preferences: Iterable[ChannelPreference]) -> None:
        for preference in preferences:
            self._preferences[preference.channel] = preference

    def _history_scores(self, notification: Notification) -> Optional[dict[str, float]]:
        if not self._config.enabled:
            return None
        labelled = self._history.with_feedback()
        if len(labelled) < self._config.min_samples:
            return None

        stats: dict[str, list[int]] = {}
        for record in labelled:
            if similarity(record.text, notification.text) <= self._config.history_similarity:
                continue
            for channel in record.channels:
                counts = stats.setdefault(channel, [0, 0, 0])
                counts[0] += 1
                if record.feedback == "positive":
                    counts[1] += 1
                elif record.feedback == "negative":
                    counts[2] += 1
        if not stats:
            return None
        return {channel: (pos - neg) / total for channel, (total, pos, neg) in stats.items()}

    def rank(self, channels: Sequence[str], notification: Notification, now: datetime) -> List[str]:
        ranked = list(channels)

        scores = self._history_scores(notification)
        if scores is not None:
            # sort() is stable, so equal scores keep the input order.
            ranked.sort(
                key=lambda ch: (
                    -scores.get(ch, 0.0),
                    -self._preferences[ch].score if ch in self._preferences else -0.5,
                )
            )

        if is_in_time_range(clock_time(now), self._night_hours):
            ranked.sort(key=lambda ch: ch not in self._silent_channels)
        return ranked

    def learn(self, record: HistoryRecord) -> List[ChannelPreference]:
        """Nudge the preference of every channel in ``record`` toward its feedback."""

        if not self._config.enabled or record.feedback is None:
            return []
        delta = self._config.learning_rate if record.feedback == "positive" else -self._config.learning_rate
        updated: List[ChannelPreference] = []
        for channel in record.channels:
            preference = self._preferences.setdefault(channel, ChannelPreference(channel=channel))
            preference.score = max(0.0, min(1.0, preference.score + delta))
            preference.sample_count += 1
            updated.append(preference)
        LOGGER.debug("Preferences updated from record %s (%s)", record.record_id, record.feedback)
        return updated
