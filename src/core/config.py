"""Core configuration dataclasses.

Config loading lives outside the core (see settings.py), but these dataclasses
define the shape the core expects and ``parse_router_config`` turns the raw
JSON dict into them, rejecting anything the pipeline cannot run with.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional

from core.errors import InvalidConfiguration

_HHMM = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")

DEFAULT_WORK_KEYWORDS = ("error", "critical", "build", "deploy", "test", "commit")


@dataclass(frozen=True)
class RateLimitConfig:
    """At most ``max`` sends per ``window_ms`` milliseconds."""

    max: int
    window_ms: int


@dataclass(frozen=True)
class ChannelConfig:
    """Per-channel routing settings; ``settings`` is passed through to the adapter."""

    name: str
    enabled: bool = True
    rate_limit: Optional[RateLimitConfig] = None
    settings: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class TimeRange:
    """Local wall-clock range in ``HH:MM``; wraps midnight when start > end."""

    start: str
    end: str


@dataclass(frozen=True)
class AggregationConfig:
    enabled: bool = False
    window_ms: int = 300_000
    max_size: int = 10
    similarity_threshold: float = 0.7


@dataclass(frozen=True)
class DndConfig:
    enabled: bool = False
    work_hours: TimeRange = TimeRange("09:00", "18:00")
    sleep_hours: TimeRange = TimeRange("23:00", "07:00")
    exceptions: frozenset[str] = frozenset({"critical"})
    auto_detect: bool = True
    work_keywords: tuple[str, ...] = DEFAULT_WORK_KEYWORDS


@dataclass(frozen=True)
class LearningConfig:
    enabled: bool = True
    min_samples: int = 50
    learning_rate: float = 0.1
    history_similarity: float = 0.5
    max_history_size: int = 1000
    max_age_days: int = 30


@dataclass(frozen=True)
class RouterConfig:
    """Everything the NotificationRouter needs, already validated."""

    channels: tuple[ChannelConfig, ...] = ()
    rules: tuple[dict, ...] = ()
    global_rate_limit: Optional[RateLimitConfig] = None
    default_channels: tuple[str, ...] = ()
    silent_channels: tuple[str, ...] = ("email",)
    night_hours: TimeRange = TimeRange("22:00", "07:00")
    aggregation: AggregationConfig = AggregationConfig()
    dnd: DndConfig = DndConfig()
    learning: LearningConfig = LearningConfig()
    tick_interval_ms: int = 2000


def _require_int(value: Any, what: str) -> int:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise InvalidConfiguration(f"{what} must be a number, got {value!r}")
    if int(value) != value:
        raise InvalidConfiguration(f"{what} must be an integer, got {value!r}")
    return int(value)


def _parse_rate_limit(raw: Optional[Mapping[str, Any]], what: str) -> Optional[RateLimitConfig]:
    if raw is None:
        return None
    if not isinstance(raw, Mapping):
        raise InvalidConfiguration(f"{what} must be an object")
    max_count = _require_int(raw.get("max"), f"{what}.max")
    window = _require_int(raw.get("window"), f"{what}.window")
    if max_count < 0:
        raise InvalidConfiguration(f"{what}.max must be >= 0")
    if window <= 0:
        raise InvalidConfiguration(f"{what}.window must be > 0 milliseconds")
    return RateLimitConfig(max=max_count, window_ms=window)


def _parse_time_range(raw: Optional[Mapping[str, Any]], default: TimeRange, what: str) -> TimeRange:
    if raw is None:
        return default
    start = raw.get("start", default.start)
    end = raw.get("end", default.end)
    for label, value in (("start", start), ("end", end)):
        if not isinstance(value, str) or not _HHMM.match(value):
            raise InvalidConfiguration(f"{what}.{label} must be HH:MM, got {value!r}")
    return TimeRange(start=start, end=end)


def string_list(raw: Any, what: str) -> tuple[str, ...]:
    """Validate an optional list of strings; ``None`` becomes an empty tuple."""

    if raw is None:
        return ()
    if isinstance(raw, str) or not isinstance(raw, (list, tuple)):
        raise InvalidConfiguration(f"{what} must be a list of strings")
    for item in raw:
        if not isinstance(item, str):
            raise InvalidConfiguration(f"{what} must be a list of strings")
    return tuple(raw)


def optional_string(raw: Any, what: str) -> Optional[str]:
    if raw is None or raw == "":
        return None
    if not isinstance(raw, str):
        raise InvalidConfiguration(f"{what} must be a string, got {raw!r}")
    return raw


def _parse_channels(raw: Any) -> tuple[ChannelConfig, ...]:
    if raw is None:
        return ()
    if not isinstance(raw, Mapping):
        raise InvalidConfiguration("channels must be an object keyed by channel name")
    channels: list[ChannelConfig] = []
    for name, entry in raw.items():
        entry = entry or {}
        if not isinstance(entry, Mapping):
            raise InvalidConfiguration(f"channels.{name} must be an object")
        settings = {k: v for k, v in entry.items() if k not in {"enabled", "rateLimit"}}
        channels.append(
            ChannelConfig(
                name=name,
                enabled=bool(entry.get("enabled", True)),
                rate_limit=_parse_rate_limit(entry.get("rateLimit"), f"channels.{name}.rateLimit"),
                settings=settings,
            )
        )
    return tuple(channels)


def _parse_aggregation(raw: Mapping[str, Any]) -> AggregationConfig:
    defaults = AggregationConfig()
    window = _require_int(raw.get("window", defaults.window_ms), "aggregation.window")
    max_size = _require_int(raw.get("maxSize", defaults.max_size), "aggregation.maxSize")
    threshold = raw.get("similarityThreshold", defaults.similarity_threshold)
    if window <= 0:
        raise InvalidConfiguration("aggregation.window must be > 0 milliseconds")
    if max_size < 1:
        raise InvalidConfiguration("aggregation.maxSize must be >= 1")
    if isinstance(threshold, bool) or not isinstance(threshold, (int, float)) or not 0 <= threshold <= 1:
        raise InvalidConfiguration("aggregation.similarityThreshold must be within [0, 1]")
    return AggregationConfig(
        enabled=bool(raw.get("enabled", defaults.enabled)),
        window_ms=window,
        max_size=max_size,
        similarity_threshold=float(threshold),
    )


def _parse_dnd(raw: Mapping[str, Any]) -> DndConfig:
    defaults = DndConfig()
    schedule = raw.get("schedule") or {}
    exceptions = raw.get("exceptions")
    keywords = raw.get("workKeywords")
    return DndConfig(
        enabled=bool(raw.get("enabled", defaults.enabled)),
        work_hours=_parse_time_range(schedule.get("workHours"), defaults.work_hours, "dndMode.schedule.workHours"),
        sleep_hours=_parse_time_range(schedule.get("sleepHours"), defaults.sleep_hours, "dndMode.schedule.sleepHours"),
        exceptions=(
            frozenset(p.lower() for p in string_list(exceptions, "dndMode.exceptions"))
            if exceptions is not None
            else defaults.exceptions
        ),
        auto_detect=bool(raw.get("autoDetect", defaults.auto_detect)),
        work_keywords=(
            tuple(k.lower() for k in string_list(keywords, "dndMode.workKeywords"))
            if keywords is not None
            else defaults.work_keywords
        ),
    )


def _parse_learning(raw: Mapping[str, Any]) -> LearningConfig:
    defaults = LearningConfig()
    learning_rate = raw.get("learningRate", defaults.learning_rate)
    history_similarity = raw.get("historySimilarity", defaults.history_similarity)
    for what, value in (("learning.learningRate", learning_rate), ("learning.historySimilarity", history_similarity)):
        if isinstance(value, bool) or not isinstance(value, (int, float)) or not 0 <= value <= 1:
            raise InvalidConfiguration(f"{what} must be within [0, 1]")
    max_history = _require_int(raw.get("maxHistorySize", defaults.max_history_size), "learning.maxHistorySize")
    if max_history < 1:
        raise InvalidConfiguration("learning.maxHistorySize must be >= 1")
    return LearningConfig(
        enabled=bool(raw.get("enabled", defaults.enabled)),
        min_samples=_require_int(raw.get("minSamples", defaults.min_samples), "learning.minSamples"),
        learning_rate=float(learning_rate),
        history_similarity=float(history_similarity),
        max_history_size=max_history,
        max_age_days=_require_int(raw.get("maxAgeDays", defaults.max_age_days), "learning.maxAgeDays"),
    )


def parse_router_config(raw: Optional[Mapping[str, Any]]) -> RouterConfig:
    """Validate the raw config dict and build a RouterConfig.

    Raises InvalidConfiguration for anything the pipeline cannot honor, such
    as a non-positive rate-limit window or a malformed ``HH:MM`` time.
    """

    raw = raw or {}
    defaults = RouterConfig()

    rules = raw.get("notificationRules") or []
    if not isinstance(rules, list) or not all(isinstance(rule, Mapping) for rule in rules):
        raise InvalidConfiguration("notificationRules must be a list of objects")

    silent = raw.get("silentChannels")
    tick_interval = _require_int(raw.get("tickInterval", defaults.tick_interval_ms), "tickInterval")
    if tick_interval <= 0:
        raise InvalidConfiguration("tickInterval must be > 0 milliseconds")

    return RouterConfig(
        channels=_parse_channels(raw.get("channels")),
        rules=tuple(dict(rule) for rule in rules),
        global_rate_limit=_parse_rate_limit(raw.get("globalRateLimit"), "globalRateLimit"),
        default_channels=string_list(raw.get("defaultChannels"), "defaultChannels"),
        silent_channels=string_list(silent, "silentChannels") if silent is not None else defaults.silent_channels,
        night_hours=_parse_time_range(raw.get("nightHours"), defaults.night_hours, "nightHours"),
        aggregation=_parse_aggregation(raw.get("aggregation") or {}),
        dnd=_parse_dnd(raw.get("dndMode") or {}),
        learning=_parse_learning(raw.get("learning") or {}),
        tick_interval_ms=tick_interval,
    )
