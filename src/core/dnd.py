"""Do-not-disturb suppression.

Everything here is a pure function of (notification, config, now) so the
schedule can be tested without touching the clock.
"""

from __future__ import annotations

from datetime import datetime

from core.config import DndConfig, TimeRange
from core.models import Notification


def clock_time(now: datetime) -> str:
    return now.strftime("%H:%M")


def is_in_time_range(current: str, time_range: TimeRange) -> bool:
    """Membership of ``HH:MM`` in a half-open range that may wrap midnight.

    ``start == end`` is treated as an empty range.
    """

    start, end = time_range.start, time_range.end
    if start <= end:
        return start <= current < end
    return current >= start or current < end


def is_work_related(text: str, keywords: tuple[str, ...]) -> bool:
    lowered = text.lower()
    return any(keyword in lowered for keyword in keywords)


def should_suppress(notification: Notification, config: DndConfig, now: datetime) -> bool:
    """Return True when the notification must be dropped right now."""

    if not config.enabled:
        return False

    if notification.priority and notification.priority in config.exceptions:
        return False

    current = clock_time(now)
    if is_in_time_range(current, config.sleep_hours):
        return True

    # During work hours only work-related notifications get through.
    if config.auto_detect and is_in_time_range(current, config.work_hours):
        return not is_work_related(notification.text, config.work_keywords)

    return False
