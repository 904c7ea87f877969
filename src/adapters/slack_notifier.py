"""Slack incoming-webhook notification adapter."""

from __future__ import annotations

from typing import Any, Mapping, Optional

from adapters.http_client import post_json
from adapters.notification_formatting import format_notification

SLACK_MAX_LENGTH = 40000


class SlackNotifier:
    """Notifier adapter that posts to a Slack incoming webhook."""

    def __init__(
        self,
        webhook_url: str,
        channel: Optional[str] = None,
        username: str = "Pulse",
        icon_emoji: str = ":robot_face:",
        name: str = "slack",
        enabled: bool = True,
    ) -> None:
        self.name = name
        self.enabled = enabled
        self._webhook_url = webhook_url
        self._channel = channel
        self._username = username
        self._icon_emoji = icon_emoji

    async def send(self, text: str, options: Mapping[str, Any]) -> None:
        payload: dict[str, Any] = {
            "text": format_notification(text, options, mode="plain", max_length=SLACK_MAX_LENGTH),
            "username": options.get("username") or self._username,
            "icon_emoji": self._icon_emoji,
        }
        channel = options.get("slack_channel") or self._channel
        if channel:
            payload["channel"] = channel
        await post_json(self.name, self._webhook_url, payload)

    async def test(self) -> dict[str, Any]:
        try:
            await self.send("🔔 Slack notifier test message", {"type": "info"})
            return {"success": True, "message": "Slack notifier is working"}
        except Exception as exc:
            return {"success": False, "message": str(exc)}
