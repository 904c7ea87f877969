"""Telegram notification adapter for Saved Messages.

Formats a human-readable Markdown message and sends it to the logged-in
user's Saved Messages through a telethon user session.
"""

from __future__ import annotations

from typing import Any, Mapping

from adapters.notification_formatting import format_notification

TELEGRAM_MAX_LENGTH = 4096


class TelegramSavedMessagesNotifier:
    """Notifier adapter that sends messages to the user's Saved Messages."""

    def __init__(self, client, name: str = "telegram_saved", enabled: bool = True) -> None:
        self.name = name
        self.enabled = enabled
        self._client = client

    async def _ensure_connected(self) -> None:
        if not self._client.is_connected():
            await self._client.connect()

    async def send(self, text: str, options: Mapping[str, Any]) -> None:
        """Send the formatted notification to Saved Messages."""

        await self._ensure_connected()
        message = format_notification(text, options, mode="markdown", max_length=TELEGRAM_MAX_LENGTH)
        await self._client.send_message("me", message, parse_mode="Markdown")

    async def test(self) -> dict[str, Any]:
        try:
            await self._ensure_connected()
            if not await self._client.is_user_authorized():
                return {"success": False, "message": "Session is not authorized, run `pulse login`"}
            await self.send("🔔 Saved Messages notifier test message", {"type": "info"})
            return {"success": True, "message": "Saved Messages notifier is working"}
        except Exception as exc:
            return {"success": False, "message": str(exc)}
