"""DingTalk custom robot webhook notification adapter."""

from __future__ import annotations

import base64
import hashlib
import hmac
import time
import urllib.parse
from typing import Any, Mapping, Optional, Sequence

from adapters.http_client import json_response, post_json
from adapters.notification_formatting import format_notification, headline
from core.errors import AdapterSendFailed

DINGTALK_MAX_LENGTH = 20000


def dingtalk_signed_url(webhook_url: str, secret: str, timestamp_ms: int) -> str:
    """Append ``timestamp`` and ``sign`` query parameters for signed robots."""

    digest = hmac.new(secret.encode("utf-8"), f"{timestamp_ms}\n{secret}".encode("utf-8"), hashlib.sha256).digest()
    sign = urllib.parse.quote_plus(base64.b64encode(digest).decode("ascii"))
    separator = "&" if "?" in webhook_url else "?"
    return f"{webhook_url}{separator}timestamp={timestamp_ms}&sign={sign}"


class DingTalkNotifier:
    """Notifier adapter that posts text or markdown messages to a DingTalk robot."""

    def __init__(
        self,
        webhook_url: str,
        secret: Optional[str] = None,
        at_mobiles: Sequence[str] = (),
        name: str = "dingtalk",
        enabled: bool = True,
    ) -> None:
        self.name = name
        self.enabled = enabled
        self._webhook_url = webhook_url
        self._secret = secret
        self._at_mobiles = list(at_mobiles)

    def build_payload(self, text: str, options: Mapping[str, Any]) -> dict[str, Any]:
        at = {"atMobiles": list(options.get("at_mobiles") or self._at_mobiles), "isAtAll": False}
        if options.get("msg_type") == "markdown":
            return {
                "msgtype": "markdown",
                "markdown": {
                    "title": options.get("title") or headline(options) or "Pulse notification",
                    "text": format_notification(text, options, mode="markdown", max_length=DINGTALK_MAX_LENGTH),
                },
                "at": at,
            }
        return {
            "msgtype": "text",
            "text": {"content": format_notification(text, options, mode="plain", max_length=DINGTALK_MAX_LENGTH)},
            "at": at,
        }

    def _url(self) -> str:
        if not self._secret:
            return self._webhook_url
        return dingtalk_signed_url(self._webhook_url, self._secret, int(time.time() * 1000))

    async def send(self, text: str, options: Mapping[str, Any]) -> dict[str, Any]:
        body = await post_json(self.name, self._url(), self.build_payload(text, options))
        response = json_response(self.name, body)
        if response.get("errcode") != 0:
            raise AdapterSendFailed(self.name, str(response.get("errmsg") or response))
        return response

    async def test(self) -> dict[str, Any]:
        try:
            await self.send("🔔 DingTalk notifier test message", {"type": "info"})
            return {"success": True, "message": "DingTalk notifier is working"}
        except Exception as exc:
            return {"success": False, "message": str(exc)}
