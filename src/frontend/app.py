"""Textual status panel for a running pulse router.

The panel owns its router: it drives ``tick()`` on the configured interval,
polls ``get_status()`` for the tables, and lets the user send ad-hoc
notifications or run the channel self-test.
"""

from __future__ import annotations

from typing import Any

from rich.text import Text
from textual import on
from textual.app import App, ComposeResult
from textual.containers import Container, Horizontal, Vertical
from textual.widgets import Button, DataTable, Footer, Input, Static

from core.router import NotificationRouter

from .constants import PULSE_GREEN, REFRESH_SECONDS


def describe_result(result: Any) -> str:
    """One-line summary of a notify() result for the status bar."""

    data = result.to_dict()
    if data.get("suppressed"):
        return "suppressed (do not disturb)"
    if data.get("aggregated"):
        return f"held for aggregation (group of {data['groupSize']})"
    if data.get("error"):
        return f"not sent: {data['error']}"
    summary = f"sent {data['successful']}/{data['total']}"
    if data["queued"]:
        summary += f", queued for {', '.join(data['queued'])}"
    return summary


class StatusPanelApp(App):
    """Live view of channels, rate limits, queue and aggregation state."""

    CSS = """
    Screen {
        background: #0f1a21;
        color: #e8eef5;
    }

    #header {
        height: 4;
        padding: 0 2;
        border-bottom: solid #2a3a46;
    }

    #title {
        text-style: bold;
    }

    .subtle {
        color: #c6d2dd;
    }

    #tables {
        height: 1fr;
    }

    #channels-panel, #limits-panel {
        width: 1fr;
        padding: 0 1;
    }

    .panel-title {
        text-style: bold;
        padding: 1 0 0 0;
    }

    #send-row {
        height: 3;
        padding: 0 1;
    }

    #send-input {
        width: 1fr;
    }

    #status-line {
        height: 1;
        padding: 0 2;
        color: #c6d2dd;
    }
    """

    BINDINGS = [
        ("r", "refresh", "Refresh"),
        ("t", "test_channels", "Test channels"),
        ("q", "quit", "Quit"),
    ]

    def __init__(self, router: NotificationRouter, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self._router = router

    def compose(self) -> ComposeResult:
        with Container(id="header"):
            yield Static(self._title_text(), id="title")
            yield Static("", id="summary", classes="subtle")

        with Horizontal(id="tables"):
            with Vertical(id="channels-panel"):
                yield Static("Channels", classes="panel-title")
                yield DataTable(id="channels-table", cursor_type="row")
            with Vertical(id="limits-panel"):
                yield Static("Rate limits", classes="panel-title")
                yield DataTable(id="limits-table", cursor_type="row")

        with Horizontal(id="send-row"):
            yield Input(placeholder="Type a notification and press Enter", id="send-input")
            yield Button("Tick", id="tick-btn")
            yield Button("Test", id="test-btn", variant="primary")
        yield Static("", id="status-line")
        yield Footer()

    def on_mount(self) -> None:
        channels = self.query_one("#channels-table", DataTable)
        channels.add_column("channel", key="channel", width=16)
        channels.add_column("enabled", key="enabled", width=8)
        channels.add_column("limit", key="limit", width=14)
        channels.add_column("preference", key="preference", width=10)
        channels.zebra_stripes = True

        limits = self.query_one("#limits-table", DataTable)
        limits.add_column("window", key="window", width=22)
        limits.add_column("count", key="count", width=6)
        limits.add_column("resets at", key="reset", width=20)
        limits.zebra_stripes = True

        self.action_refresh()
        self.set_interval(REFRESH_SECONDS, self.action_refresh)
        self.set_interval(self._router.tick_interval, self._tick)

    async def _tick(self) -> None:
        await self._router.tick()
        self.action_refresh()

    def action_refresh(self) -> None:
        status = self._router.get_status()

        channels = self.query_one("#channels-table", DataTable)
        channels.clear()
        for name, info in status["channels"].items():
            limit = info["rateLimit"]
            preference = info["preference"]
            channels.add_row(
                name,
                Text("yes", style="green") if info["enabled"] else Text("no", style="red"),
                f"{limit['max']}/{limit['window'] // 1000}s" if limit else "-",
                f"{preference:.2f}" if preference is not None else "-",
                key=name,
            )

        limits = self.query_one("#limits-table", DataTable)
        limits.clear()
        for key, window in status["rateLimits"].items():
            limits.add_row(key, str(window["count"]), window["resetAt"][11:19], key=key)

        self.query_one("#summary", Static).update(
            f"rules: {status['rules']}   queue: {status['queueSize']}   "
            f"aggregating: {status['pendingAggregations']}   history: {status['historySize']}"
        )

    def _set_status(self, message: str) -> None:
        self.query_one("#status-line", Static).update(message)

    @on(Input.Submitted, "#send-input")
    async def _on_send(self, event: Input.Submitted) -> None:
        text = event.value.strip()
        if not text:
            return
        result = await self._router.notify(text, {"module": "status-panel"})
        event.input.value = ""
        self._set_status(describe_result(result))
        self.action_refresh()

    @on(Button.Pressed, "#tick-btn")
    async def _on_tick(self) -> None:
        await self._tick()
        self._set_status("tick complete")

    @on(Button.Pressed, "#test-btn")
    async def _on_test(self) -> None:
        await self.action_test_channels()

    async def action_test_channels(self) -> None:
        self._set_status("testing channels...")
        results = await self._router.test_all()
        parts = [
            f"{name}: {'ok' if result.get('success') else 'failed'}" for name, result in results.items()
        ]
        self._set_status("   ".join(parts) or "no channels with adapters")

    async def action_quit(self) -> None:
        # Held aggregation groups are flushed before the panel exits.
        await self._router.shutdown()
        self.exit()

    @staticmethod
    def _title_text() -> Text:
        return Text.assemble(
            ("PULSE", PULSE_GREEN),
            (" > Status Panel", "bold"),
        )
