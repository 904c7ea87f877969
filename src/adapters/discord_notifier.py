"""Discord webhook notification adapter."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Mapping, Optional

from adapters.http_client import post_json
from adapters.notification_formatting import format_notification, headline, truncate

DISCORD_MAX_LENGTH = 2000
EMBED_DESCRIPTION_MAX = 4096
TYPE_COLORS = {"error": 0xE74C3C, "warning": 0xF1C40F, "info": 0x3498DB}


class DiscordNotifier:
    """Notifier adapter that posts to a Discord channel webhook."""

    def __init__(
        self,
        webhook_url: str,
        username: str = "Pulse",
        avatar_url: Optional[str] = None,
        name: str = "discord",
        enabled: bool = True,
    ) -> None:
        self.name = name
        self.enabled = enabled
        self._webhook_url = webhook_url
        self._username = username
        self._avatar_url = avatar_url

    def build_embed(self, text: str, options: Mapping[str, Any]) -> dict[str, Any]:
        embed_options = options.get("embed")
        embed_options = embed_options if isinstance(embed_options, Mapping) else {}
        embed: dict[str, Any] = {
            "title": embed_options.get("title") or headline(options) or "Notification",
            "description": truncate(text, EMBED_DESCRIPTION_MAX),
            "color": embed_options.get("color", TYPE_COLORS.get(options.get("type"), 0x95A5A6)),
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
        fields = embed_options.get("fields")
        if fields:
            embed["fields"] = list(fields)
        return embed

    async def send(self, text: str, options: Mapping[str, Any]) -> None:
        payload: dict[str, Any] = {"username": options.get("username") or self._username}
        if self._avatar_url:
            payload["avatar_url"] = self._avatar_url
        if options.get("embed"):
            payload["embeds"] = [self.build_embed(text, options)]
        else:
            payload["content"] = format_notification(text, options, mode="plain", max_length=DISCORD_MAX_LENGTH)
        await post_json(self.name, self._webhook_url, payload)

    async def test(self) -> dict[str, Any]:
        try:
            await self.send("🔔 Discord notifier test message", {"type": "info"})
            return {"success": True, "message": "Discord notifier is working"}
        except Exception as exc:
            return {"success": False, "message": str(exc)}
