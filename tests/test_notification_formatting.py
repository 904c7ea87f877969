from __future__ import annotations

from datetime import datetime

import pytest

from adapters.notification_formatting import TRUNCATION_NOTICE, format_notification, headline, truncate

NOW = datetime(2024, 1, 1, 12, 30, 5)


def test_headline_prefers_priority_icon() -> None:
    assert headline({"type": "error", "priority": "high", "module": "builder"}) == "🔴 ERROR · high · builder"
    assert headline({"type": "warning"}) == "⚠️ WARNING"
    assert headline({}) == ""


def test_truncate_keeps_notice_within_limit() -> None:
    text = "x" * 500
    clipped = truncate(text, 100)
    assert len(clipped) == 100
    assert clipped.endswith(TRUNCATION_NOTICE)
    assert truncate("short", 100) == "short"
    assert truncate(text, None) == text


def test_html_mode_escapes_text_and_header() -> None:
    message = format_notification("<script>1 & 2</script>", {"type": "info", "module": "a<b"}, mode="html", now=NOW)
    assert message.startswith("[12:30:05 01-01-2024]")
    assert "&lt;script&gt;1 &amp; 2&lt;/script&gt;" in message
    assert "<b>ℹ️ INFO · a&lt;b</b>" in message


def test_markdown_mode_escapes_markup() -> None:
    message = format_notification("use *bold* and _it_", {}, mode="markdown", now=NOW)
    assert "use \\*bold\\* and \\_it\\_" in message


def test_plain_mode_respects_channel_limit() -> None:
    message = format_notification("y" * 5000, {"priority": "low"}, mode="plain", max_length=2000, now=NOW)
    assert len(message) <= 2000
    assert message.splitlines()[0] == "[12:30:05 01-01-2024] 🟢 low"


def test_unknown_mode_is_rejected() -> None:
    with pytest.raises(ValueError):
        format_notification("hi", {}, mode="rtf")
