"""WeChat Work (WeCom) group robot webhook notification adapter."""

from __future__ import annotations

from typing import Any, Mapping, Sequence

from adapters.http_client import json_response, post_json
from adapters.notification_formatting import format_notification
from core.errors import AdapterSendFailed

# WeCom rejects text bodies over 2048 bytes; characters are a safe approximation for ASCII.
WECHAT_WORK_MAX_LENGTH = 2048


class WeChatWorkNotifier:
    """Notifier adapter that posts text or markdown messages to a WeCom group robot."""

    def __init__(
        self,
        webhook_url: str,
        mention_list: Sequence[str] = (),
        mention_mobiles: Sequence[str] = (),
        name: str = "wechat_work",
        enabled: bool = True,
    ) -> None:
        self.name = name
        self.enabled = enabled
        self._webhook_url = webhook_url
        self._mention_list = list(mention_list)
        self._mention_mobiles = list(mention_mobiles)

    def build_payload(self, text: str, options: Mapping[str, Any]) -> dict[str, Any]:
        if options.get("msg_type") == "markdown":
            return {
                "msgtype": "markdown",
                "markdown": {
                    "content": format_notification(text, options, mode="plain", max_length=WECHAT_WORK_MAX_LENGTH)
                },
            }
        return {
            "msgtype": "text",
            "text": {
                "content": format_notification(text, options, mode="plain", max_length=WECHAT_WORK_MAX_LENGTH),
                "mentioned_list": list(options.get("mention_list") or self._mention_list),
                "mentioned_mobile_list": list(options.get("mention_mobiles") or self._mention_mobiles),
            },
        }

    async def send(self, text: str, options: Mapping[str, Any]) -> dict[str, Any]:
        body = await post_json(self.name, self._webhook_url, self.build_payload(text, options))
        response = json_response(self.name, body)
        if response.get("errcode") != 0:
            raise AdapterSendFailed(self.name, str(response.get("errmsg") or response))
        return response

    async def test(self) -> dict[str, Any]:
        try:
            await self.send("🔔 WeChat Work notifier test message", {"type": "info"})
            return {"success": True, "message": "WeChat Work notifier is working"}
        except Exception as exc:
            return {"success": False, "message": str(exc)}
