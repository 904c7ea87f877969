"""Feishu (Lark) custom bot webhook notification adapter."""

from __future__ import annotations

import base64
import hashlib
import hmac
import time
from typing import Any, Mapping, Optional

from adapters.http_client import json_response, post_json
from adapters.notification_formatting import format_notification, headline
from core.errors import AdapterSendFailed

FEISHU_MAX_LENGTH = 30000


def feishu_sign(secret: str, timestamp: int) -> str:
    """Signature for bots with signing enabled: HMAC-SHA256 keyed by ``"{ts}\\n{secret}"``."""

    key = f"{timestamp}\n{secret}".encode("utf-8")
    return base64.b64encode(hmac.new(key, b"", hashlib.sha256).digest()).decode("ascii")


class FeishuNotifier:
    """Notifier adapter that posts text or rich-text (``post``) messages to a Feishu bot."""

    def __init__(self, webhook_url: str, secret: Optional[str] = None, name: str = "feishu", enabled: bool = True) -> None:
        self.name = name
        self.enabled = enabled
        self._webhook_url = webhook_url
        self._secret = secret

    def build_payload(self, text: str, options: Mapping[str, Any], timestamp: Optional[int] = None) -> dict[str, Any]:
        body = format_notification(text, options, mode="plain", max_length=FEISHU_MAX_LENGTH)
        if options.get("msg_type") == "post":
            payload: dict[str, Any] = {
                "msg_type": "post",
                "content": {
                    "post": {
                        "zh_cn": {
                            "title": options.get("title") or headline(options) or "Pulse notification",
                            "content": [[{"tag": "text", "text": body}]],
                        }
                    }
                },
            }
        else:
            payload = {"msg_type": "text", "content": {"text": body}}
        if self._secret:
            timestamp = timestamp if timestamp is not None else int(time.time())
            payload["timestamp"] = str(timestamp)
            payload["sign"] = feishu_sign(self._secret, timestamp)
        return payload

    async def send(self, text: str, options: Mapping[str, Any]) -> dict[str, Any]:
        body = await post_json(self.name, self._webhook_url, self.build_payload(text, options))
        response = json_response(self.name, body)
        if response.get("code", response.get("StatusCode")) != 0:
            raise AdapterSendFailed(self.name, str(response.get("msg") or response.get("StatusMessage") or response))
        return response

    async def test(self) -> dict[str, Any]:
        try:
            await self.send("🔔 Feishu notifier test message", {"type": "info"})
            return {"success": True, "message": "Feishu notifier is working"}
        except Exception as exc:
            return {"success": False, "message": str(exc)}
