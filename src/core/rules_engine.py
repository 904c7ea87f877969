"""Rule compilation, matching, and channel selection (core domain)."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence

from core.config import optional_string, string_list
from core.errors import InvalidConfiguration
from core.models import Notification
from core.registry import ChannelRegistry


@dataclass(frozen=True)
class Rule:
    """Compiled routing rule. ``None``/empty predicates are wildcards."""

    name: str
    match_type: Optional[str]
    match_priority: Optional[str]
    match_keywords: tuple[str, ...]
    match_modules: frozenset[str]
    target_channels: tuple[str, ...]


@dataclass(frozen=True)
class RuleMatch:
    """A single rule match with a human-readable reason."""

    rule_name: str
    reason: str
    target_channels: tuple[str, ...]


def build_rules(rules_config: Iterable[dict]) -> List[Rule]:
    """Normalize rule configs.

    This keeps per-notification matching minimal and avoids any ambiguity
    about keyword casing or missing optional fields.
    """

    compiled: List[Rule] = []
    for index, rule in enumerate(rules_config):
        if not rule.get("enabled", True):
            continue
        where = f"notificationRules[{index}]"
        channels = string_list(rule.get("channels"), f"{where}.channels")
        if not channels:
            raise InvalidConfiguration(f"{where}.channels must be a non-empty list")
        match_type = optional_string(rule.get("type"), f"{where}.type")
        match_priority = optional_string(rule.get("priority"), f"{where}.priority")
        compiled.append(
            Rule(
                name=optional_string(rule.get("name"), f"{where}.name") or f"rule-{index + 1}",
                match_type=match_type.lower() if match_type else None,
                match_priority=match_priority.lower() if match_priority else None,
                match_keywords=tuple(k.lower() for k in string_list(rule.get("keywords"), f"{where}.keywords")),
                match_modules=frozenset(string_list(rule.get("modules"), f"{where}.modules")),
                target_channels=tuple(dict.fromkeys(channels)),
            )
        )
    return compiled


def _match_reason(rule: Rule, notification: Notification, lowered: str) -> Optional[str]:
    reason_parts: List[str] = []

    if rule.match_type:
        if notification.type != rule.match_type:
            return None
        reason_parts.append(f"type: {rule.match_type}")

    if rule.match_priority:
        if notification.priority != rule.match_priority:
            return None
        reason_parts.append(f"priority: {rule.match_priority}")

    if rule.match_keywords:
        keyword_hits = [
            k for k in rule.match_keywords if k in lowered or k in notification.keywords
        ]
        if not keyword_hits:
            return None
        reason_parts.append(f"keyword(s): {', '.join(sorted(set(keyword_hits)))}")

    if rule.match_modules:
        if notification.module not in rule.match_modules:
            return None
        reason_parts.append(f"module: {notification.module}")

    return "\n".join(reason_parts) or "catch-all"


def match_rules(notification: Notification, rules: Iterable[Rule]) -> List[RuleMatch]:
    """Return all rule matches for the given notification.

    Matching logic:
    - Every predicate present on a rule must match; absent ones match anything.
    - Keywords match as case-insensitive substrings of the text, or exactly
      against the notification's declared keywords.
    - Reasons list the predicates that matched.
    """

    lowered = notification.text.lower()
    matches: List[RuleMatch] = []
    for rule in rules:
        reason = _match_reason(rule, notification, lowered)
        if reason is None:
            continue
        matches.append(RuleMatch(rule_name=rule.name, reason=reason, target_channels=rule.target_channels))
    return matches


def select_channels(
    notification: Notification,
    rules: Sequence[Rule],
    registry: ChannelRegistry,
    default_channels: Sequence[str] = (),
    explicit_channels: Optional[Sequence[str]] = None,
) -> tuple[str, ...]:
    """Pick the channels that should receive ``notification``.

    An explicit request always wins. Otherwise matched rules are unioned, then
    the configured defaults, then the first enabled channel, so a notification
    is only left unrouted when nothing is enabled at all.
    """

    if explicit_channels is None:
        explicit_channels = notification.requested_channels
    if explicit_channels is not None:
        return tuple(ch for ch in dict.fromkeys(explicit_channels) if registry.is_enabled(ch))

    selected: dict[str, None] = {}
    for match in match_rules(notification, rules):
        for channel in match.target_channels:
            if registry.is_enabled(channel):
                selected.setdefault(channel, None)

    if not selected:
        for channel in default_channels:
            if registry.is_enabled(channel):
                selected.setdefault(channel, None)

    if not selected:
        enabled = registry.enabled_channels()
        if enabled:
            selected[enabled[0]] = None

    return tuple(selected)
