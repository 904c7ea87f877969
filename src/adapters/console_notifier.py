"""Console notification adapter rendered with rich."""

from __future__ import annotations

from typing import Any, Mapping, Optional

from rich.console import Console
from rich.panel import Panel
from rich.text import Text

from adapters.notification_formatting import headline

BORDER_STYLES = {"error": "red", "warning": "yellow", "info": "blue"}


class ConsoleNotifier:
    """Prints notifications to the terminal; handy as the default channel."""

    def __init__(self, console: Optional[Console] = None, name: str = "console", enabled: bool = True) -> None:
        self.name = name
        self.enabled = enabled
        self._console = console or Console(stderr=True)

    async def send(self, text: str, options: Mapping[str, Any]) -> None:
        self._console.print(
            Panel(
                Text(text),
                title=Text(headline(options)) if headline(options) else None,
                border_style=BORDER_STYLES.get(options.get("type"), "white"),
            )
        )

    async def test(self) -> dict[str, Any]:
        await self.send("🔔 Console notifier test message", {"type": "info"})
        return {"success": True, "message": "Console notifier is working"}
