"""Telegram Bot API notification adapter.

Uses the Bot API for delivery so notifications can be routed via a bot chat.
"""

from __future__ import annotations

from typing import Any, Mapping

from adapters.http_client import json_response, post_json
from adapters.notification_formatting import format_notification
from core.errors import AdapterSendFailed

TELEGRAM_MAX_LENGTH = 4096


class TelegramBotNotifier:
    """Notifier adapter that sends messages via the Telegram Bot API."""

    def __init__(self, bot_token: str, chat_id: str, name: str = "telegram", enabled: bool = True) -> None:
        self.name = name
        self.enabled = enabled
        self._bot_token = bot_token
        self._chat_id = chat_id

    def _endpoint(self) -> str:
        # The Bot API endpoint is deterministic and derived from the token.
        return f"https://api.telegram.org/bot{self._bot_token}/sendMessage"

    async def send(self, text: str, options: Mapping[str, Any]) -> dict:
        """Send the formatted notification via the Bot API."""

        message = format_notification(text, options, mode="html", max_length=TELEGRAM_MAX_LENGTH)
        payload = {
            "chat_id": options.get("chat_id") or self._chat_id,
            "text": message,
            "parse_mode": "HTML",
            "disable_web_page_preview": True,
        }
        body = await post_json(self.name, self._endpoint(), payload)
        response = json_response(self.name, body)
        if not response.get("ok", False):
            raise AdapterSendFailed(self.name, response.get("description", "Bot API rejected the message"))
        return response

    async def test(self) -> dict[str, Any]:
        try:
            await self.send("🔔 Telegram notifier test message", {"type": "info"})
            return {"success": True, "message": "Telegram notifier is working"}
        except Exception as exc:
            return {"success": False, "message": str(exc)}
