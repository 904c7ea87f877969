"""Shared notification formatting helpers.

Keeping formatting here prevents drift between adapters and keeps messages
consistent regardless of delivery channel.
"""

from __future__ import annotations

import html
from datetime import datetime
from typing import Any, Mapping, Optional

TYPE_ICONS = {"error": "❌", "warning": "⚠️", "info": "ℹ️"}
PRIORITY_ICONS = {"critical": "🚨", "high": "🔴", "medium": "🟡", "low": "🟢"}
TRUNCATION_NOTICE = "\n\n... (message truncated)"
DIVIDER = "──────────────"


def truncate(text: str, max_length: Optional[int]) -> str:
    """Clip ``text`` to ``max_length`` characters, notice included."""

    if max_length is None or len(text) <= max_length:
        return text
    keep = max(0, max_length - len(TRUNCATION_NOTICE))
    return text[:keep] + TRUNCATION_NOTICE


def headline(options: Mapping[str, Any]) -> str:
    """Short plain-text header, e.g. ``🔴 ERROR · high · builder``."""

    parts: list[str] = []
    notification_type = options.get("type")
    priority = options.get("priority")
    icon = PRIORITY_ICONS.get(priority) or TYPE_ICONS.get(notification_type)
    if icon:
        parts.append(icon)
    labels = [
        str(label)
        for label in (
            notification_type.upper() if notification_type else None,
            priority,
            options.get("module"),
        )
        if label
    ]
    if labels:
        parts.append(" · ".join(labels))
    return " ".join(parts)


def _escape_md(value: str) -> str:
    for ch in r"*_[`":
        value = value.replace(ch, f"\\{ch}")
    return value


def _format_markdown(text: str, options: Mapping[str, Any], timestamp: str) -> str:
    header = headline(options)
    lines = [f"[{timestamp}]"]
    if header:
        lines.append(f"*{_escape_md(header)}*")
    lines.extend([DIVIDER, "", _escape_md(text)])
    return "\n".join(lines)


def _format_html(text: str, options: Mapping[str, Any], timestamp: str) -> str:
    header = headline(options)
    parts = [f"[{html.escape(timestamp)}]"]
    if header:
        parts.append(f"<b>{html.escape(header)}</b>")
    parts.extend([DIVIDER, "", html.escape(text)])
    return "\n".join(parts)


def _format_plain(text: str, options: Mapping[str, Any], timestamp: str) -> str:
    header = headline(options)
    lines = [f"[{timestamp}] {header}".rstrip(), "", text]
    return "\n".join(lines)


def format_notification(
    text: str,
    options: Mapping[str, Any],
    mode: str,
    max_length: Optional[int] = None,
    now: Optional[datetime] = None,
) -> str:
    """Return the notification formatted for the requested mode."""

    timestamp = (now or datetime.now()).strftime("%H:%M:%S %d-%m-%Y")
    # Truncate the body before escaping so escapes are never cut in half.
    body = truncate(text, max_length - 120 if max_length else None)
    if mode == "markdown":
        return _format_markdown(body, options, timestamp)
    if mode == "html":
        return _format_html(body, options, timestamp)
    if mode == "plain":
        return _format_plain(body, options, timestamp)
    raise ValueError(f"Unsupported notification format: {mode}")
