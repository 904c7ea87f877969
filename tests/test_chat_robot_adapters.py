from __future__ import annotations

import asyncio
import base64
import hashlib
import hmac
import json
from typing import Any

import pytest

from adapters import dingtalk_notifier, feishu_notifier, wechat_work_notifier
from adapters.dingtalk_notifier import DingTalkNotifier, dingtalk_signed_url
from adapters.factory import build_adapters
from adapters.feishu_notifier import FeishuNotifier, feishu_sign
from adapters.wechat_work_notifier import WeChatWorkNotifier
from core.config import parse_router_config
from core.errors import AdapterSendFailed


class RecordingPost:
    def __init__(self, response: dict[str, Any]) -> None:
        self.response = json.dumps(response)
        self.calls: list[tuple[str, dict[str, Any]]] = []

    async def __call__(self, channel: str, url: str, payload: dict[str, Any], headers=None, timeout=10) -> str:
        self.calls.append((url, payload))
        return self.response


def test_feishu_signature_matches_documented_scheme() -> None:
    expected = base64.b64encode(hmac.new(b"1700000000\nsecret", b"", hashlib.sha256).digest()).decode()
    assert feishu_sign("secret", 1700000000) == expected

    payload = FeishuNotifier("https://open.feishu.test/hook", secret="secret").build_payload(
        "hello", {}, timestamp=1700000000
    )
    assert payload["timestamp"] == "1700000000"
    assert payload["sign"] == expected
    assert payload["msg_type"] == "text"


def test_feishu_post_message_and_error_code(monkeypatch: pytest.MonkeyPatch) -> None:
    post = RecordingPost({"code": 19021, "msg": "sign match fail"})
    monkeypatch.setattr(feishu_notifier, "post_json", post)
    notifier = FeishuNotifier("https://open.feishu.test/hook")

    with pytest.raises(AdapterSendFailed, match="sign match fail"):
        asyncio.run(notifier.send("build broke", {"msg_type": "post", "title": "CI"}))

    payload = post.calls[0][1]
    assert "sign" not in payload
    post_body = payload["content"]["post"]["zh_cn"]
    assert post_body["title"] == "CI"
    assert "build broke" in post_body["content"][0][0]["text"]


def test_dingtalk_signed_url_and_markdown(monkeypatch: pytest.MonkeyPatch) -> None:
    url = dingtalk_signed_url("https://oapi.dingtalk.test/robot/send?access_token=abc", "secret", 1700000000000)
    assert url.startswith("https://oapi.dingtalk.test/robot/send?access_token=abc&timestamp=1700000000000&sign=")

    post = RecordingPost({"errcode": 0, "errmsg": "ok"})
    monkeypatch.setattr(dingtalk_notifier, "post_json", post)
    notifier = DingTalkNotifier("https://oapi.dingtalk.test/robot/send?access_token=abc", at_mobiles=["138"])

    asyncio.run(notifier.send("deploy done", {"msg_type": "markdown", "type": "info"}))

    sent_url, payload = post.calls[0]
    assert sent_url == "https://oapi.dingtalk.test/robot/send?access_token=abc"
    assert payload["msgtype"] == "markdown"
    assert payload["markdown"]["title"] == "ℹ️ INFO"
    assert payload["at"]["atMobiles"] == ["138"]


def test_wechat_work_text_mentions_and_error(monkeypatch: pytest.MonkeyPatch) -> None:
    post = RecordingPost({"errcode": 93000, "errmsg": "invalid webhook url"})
    monkeypatch.setattr(wechat_work_notifier, "post_json", post)
    notifier = WeChatWorkNotifier("https://qyapi.weixin.test/send?key=k", mention_list=["@all"])

    with pytest.raises(AdapterSendFailed, match="invalid webhook url"):
        asyncio.run(notifier.send("disk full", {}))

    text = post.calls[0][1]["text"]
    assert "disk full" in text["content"]
    assert text["mentioned_list"] == ["@all"]


def test_factory_builds_chat_robots() -> None:
    config = parse_router_config(
        {"channels": {"feishu": {}, "dingtalk": {"atMobiles": ["138"]}, "wecom": {"adapter": "wechat_work"}}}
    )
    env = {
        "FEISHU_WEBHOOK_URL": "https://open.feishu.test/hook",
        "DINGTALK_WEBHOOK_URL": "https://oapi.dingtalk.test/robot/send?access_token=abc",
        "DINGTALK_SECRET": "secret",
        "WECHAT_WORK_WEBHOOK_URL": "https://qyapi.weixin.test/send?key=k",
    }

    adapters = build_adapters(config, env)

    assert isinstance(adapters["feishu"], FeishuNotifier)
    assert isinstance(adapters["dingtalk"], DingTalkNotifier)
    assert isinstance(adapters["wecom"], WeChatWorkNotifier)
    assert adapters["wecom"].name == "wecom"
