from __future__ import annotations

import asyncio
from datetime import datetime
from typing import Any, Mapping

from core.config import ChannelConfig
from core.dispatcher import Dispatcher
from core.models import build_notification
from core.registry import ChannelRegistry

NOW = datetime(2024, 1, 1, 12, 0)


class FakeAdapter:
    def __init__(self, name: str, fail: bool = False) -> None:
        self.name = name
        self.enabled = True
        self.fail = fail
        self.sent: list[tuple[str, dict[str, Any]]] = []

    async def send(self, text: str, options: Mapping[str, Any]) -> None:
        if self.fail:
            raise RuntimeError(f"{self.name} is down")
        self.sent.append((text, dict(options)))

    async def test(self) -> dict[str, Any]:
        if self.fail:
            raise RuntimeError(f"{self.name} is down")
        return {"success": True, "message": "ok"}


def _registry(*adapters: FakeAdapter) -> ChannelRegistry:
    registry = ChannelRegistry()
    for adapter in adapters:
        registry.register(adapter.name, ChannelConfig(name=adapter.name), adapter)
    return registry


def test_dispatch_reports_each_channel() -> None:
    good = FakeAdapter("telegram")
    bad = FakeAdapter("discord", fail=True)
    dispatcher = Dispatcher(_registry(good, bad))
    notification = build_notification("deploy done", {"type": "info", "subject": "Deploy"}, NOW)

    result = asyncio.run(dispatcher.dispatch(notification, ["telegram", "discord"]))

    assert (result.successful, result.failed, result.total) == (1, 1, 2)
    assert result.success is True
    assert result.outcomes[1].error == "discord is down"
    assert good.sent == [("deploy done", {"subject": "Deploy", "type": "info"})]


def test_dispatch_missing_or_disabled_adapter_is_a_failed_outcome() -> None:
    registry = _registry(FakeAdapter("telegram"))
    registry.register("ghost")
    off = FakeAdapter("slack")
    off.enabled = False
    registry.register("slack", ChannelConfig(name="slack"), off)
    dispatcher = Dispatcher(registry)
    notification = build_notification("hello", {}, NOW)

    result = asyncio.run(dispatcher.dispatch(notification, ["ghost", "slack"]))

    assert result.success is False
    assert [outcome.success for outcome in result.outcomes] == [False, False]
    assert "not found" in result.outcomes[0].error
    assert "disabled" in result.outcomes[1].error
    assert off.sent == []


def test_adapters_get_independent_option_dicts() -> None:
    class MutatingAdapter(FakeAdapter):
        async def send(self, text: str, options: Mapping[str, Any]) -> None:
            options["touched"] = True  # type: ignore[index]
            await super().send(text, options)

    first = MutatingAdapter("first")
    second = FakeAdapter("second")
    dispatcher = Dispatcher(_registry(first, second))
    notification = build_notification("hello", {"type": "info"}, NOW)

    asyncio.run(dispatcher.dispatch(notification, ["first", "second"]))

    assert "touched" not in second.sent[0][1]
    assert "touched" not in notification.adapter_options()


def test_test_all_catches_adapter_errors() -> None:
    dispatcher = Dispatcher(_registry(FakeAdapter("telegram"), FakeAdapter("discord", fail=True)))

    results = asyncio.run(dispatcher.test_all())

    assert results["telegram"]["success"] is True
    assert results["discord"] == {"success": False, "message": "discord is down"}


def test_channels_are_sent_concurrently() -> None:
    class HandshakeAdapter(FakeAdapter):
        def __init__(self, name: str, mine: asyncio.Event, theirs: asyncio.Event) -> None:
            super().__init__(name)
            self._mine = mine
            self._theirs = theirs

        async def send(self, text: str, options: Mapping[str, Any]) -> None:
            self._mine.set()
            # Only completes if the other channel's send is already running.
            await asyncio.wait_for(self._theirs.wait(), timeout=1)
            await super().send(text, options)

    async def scenario():
        first_started = asyncio.Event()
        second_started = asyncio.Event()
        first = HandshakeAdapter("first", first_started, second_started)
        second = HandshakeAdapter("second", second_started, first_started)
        dispatcher = Dispatcher(_registry(first, second))
        return await dispatcher.dispatch(build_notification("hello", {}, NOW), ["first", "second"])

    result = asyncio.run(scenario())

    assert (result.successful, result.failed) == (2, 0)
