"""Core domain models.

These dataclasses are shared across the core and adapters to avoid tight
coupling to any integration-specific types.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Mapping, Optional, Union

LOGGER = logging.getLogger(__name__)

NOTIFICATION_TYPES = ("error", "warning", "info")
PRIORITIES = ("critical", "high", "medium", "low")

# Option keys the router understands; everything else is forwarded to adapters.
# "aggregated" and "count" are set only by the aggregator and never read from producers.
_ROUTING_KEYS = {"type", "priority", "keywords", "module", "channels", "aggregated", "count"}


@dataclass(frozen=True)
class Notification:
    """A single producer event, the unit of routing."""

    text: str
    timestamp: datetime
    type: Optional[str] = None
    priority: Optional[str] = None
    keywords: tuple[str, ...] = ()
    module: Optional[str] = None
    requested_channels: Optional[tuple[str, ...]] = None
    extras: Mapping[str, Any] = field(default_factory=dict)
    aggregated: bool = False
    count: int = 1

    def adapter_options(self) -> dict[str, Any]:
        """Options forwarded to a channel adapter's ``send``."""

        options: dict[str, Any] = dict(self.extras)
        if self.type:
            options["type"] = self.type
        if self.priority:
            options["priority"] = self.priority
        if self.module:
            options["module"] = self.module
        if self.aggregated:
            options["aggregated"] = True
            options["count"] = self.count
        return options


def build_notification(text: str, options: Optional[Mapping[str, Any]], now: datetime) -> Notification:
    """Build an immutable Notification from the loosely-typed producer options."""

    if options is None:
        options = {}
    elif not isinstance(options, Mapping):
        LOGGER.warning("Ignoring notification options of type %s", type(options).__name__)
        options = {}

    keywords = _string_tuple(options, "keywords") or ()
    channels = _string_tuple(options, "channels")

    def _lowered(key: str) -> Optional[str]:
        value = options.get(key)
        return str(value).lower() if value else None

    module = options.get("module")
    return Notification(
        text=text,
        timestamp=now,
        type=_lowered("type"),
        priority=_lowered("priority"),
        keywords=tuple(dict.fromkeys(k.lower() for k in keywords)),
        module=str(module) if module else None,
        requested_channels=channels,
        extras={k: v for k, v in options.items() if k not in _ROUTING_KEYS},
    )


def _string_tuple(options: Mapping[str, Any], key: str) -> Optional[tuple[str, ...]]:
    """A string or list option as a tuple of strings; anything else is ignored."""

    value = options.get(key)
    if value is None:
        return None
    if isinstance(value, str):
        return (value,)
    if isinstance(value, (list, tuple)):
        return tuple(str(item) for item in value)
    LOGGER.warning("Ignoring option %r: expected a string or a list, got %s", key, type(value).__name__)
    return None


@dataclass(frozen=True)
class DeliveryOutcome:
    """Result of one send attempt on one channel."""

    channel: str
    success: bool
    error: Optional[str] = None


@dataclass(frozen=True)
class DeliveryResult:
    """Joined outcomes of dispatching one notification."""

    outcomes: tuple[DeliveryOutcome, ...] = ()
    queued: tuple[str, ...] = ()
    record_id: Optional[int] = None
    error: Optional[str] = None

    @property
    def successful(self) -> int:
        return sum(1 for outcome in self.outcomes if outcome.success)

    @property
    def failed(self) -> int:
        return sum(1 for outcome in self.outcomes if not outcome.success)

    @property
    def total(self) -> int:
        return len(self.outcomes)

    @property
    def success(self) -> bool:
        return self.successful > 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "successful": self.successful,
            "failed": self.failed,
            "total": self.total,
            "queued": list(self.queued),
            "recordId": self.record_id,
            "error": self.error,
            "outcomes": [
                {"channel": o.channel, "success": o.success, "error": o.error} for o in self.outcomes
            ],
        }


@dataclass(frozen=True)
class SuppressedResult:
    """The notification was dropped by do-not-disturb."""

    reason: str = "dnd"
    suppressed: bool = True

    def to_dict(self) -> dict[str, Any]:
        return {"suppressed": True, "reason": self.reason}


@dataclass(frozen=True)
class AggregatedResult:
    """The notification is held in an aggregation group."""

    group_size: int
    aggregated: bool = True

    def to_dict(self) -> dict[str, Any]:
        return {"aggregated": True, "groupSize": self.group_size}


NotifyResult = Union[DeliveryResult, SuppressedResult, AggregatedResult]


@dataclass
class HistoryRecord:
    """One dispatch, kept for preference learning."""

    record_id: int
    timestamp: datetime
    text: str
    channels: tuple[str, ...]
    feedback: Optional[str] = None


@dataclass
class ChannelPreference:
    """Learned per-channel score in [0, 1]."""

    channel: str
    score: float = 0.5
    sample_count: int = 0
