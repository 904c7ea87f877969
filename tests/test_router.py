from __future__ import annotations

import asyncio
from datetime import datetime, timedelta
from typing import Any, Mapping, Optional

import pytest

from core.config import parse_router_config
from core.errors import NO_CHANNELS_SELECTED
from core.models import AggregatedResult, ChannelPreference, DeliveryResult, HistoryRecord, SuppressedResult
from core.router import NotificationRouter, build_registry

START = datetime(2024, 1, 1, 12, 0)


class Clock:
    def __init__(self, now: datetime = START) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> datetime:
        self.now += timedelta(seconds=seconds)
        return self.now


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
        return {"success": True, "message": "ok"}


class FakeStorage:
    def __init__(self) -> None:
        self.history: list[HistoryRecord] = []
        self.feedback: dict[int, str] = {}
        self.preferences: dict[str, ChannelPreference] = {}

    def load_history(self, limit: int) -> list[HistoryRecord]:
        return self.history[-limit:]

    def append_history(self, record: HistoryRecord) -> None:
        self.history.append(record)

    def set_feedback(self, record_id: int, feedback: str) -> None:
        self.feedback[record_id] = feedback

    def delete_history_before(self, cutoff: datetime) -> int:
        before = len(self.history)
        self.history = [record for record in self.history if record.timestamp >= cutoff]
        return before - len(self.history)

    def load_preferences(self) -> list[ChannelPreference]:
        return list(self.preferences.values())

    def save_preference(self, preference: ChannelPreference) -> None:
        self.preferences[preference.channel] = preference


def _router(
    raw: dict,
    *adapters: FakeAdapter,
    clock: Optional[Clock] = None,
    storage: Optional[FakeStorage] = None,
) -> NotificationRouter:
    config = parse_router_config(raw)
    registry = build_registry(config, {adapter.name: adapter for adapter in adapters})
    return NotificationRouter(config, registry, storage=storage, clock=clock or Clock())


def test_fourth_send_is_queued_then_delivered_after_window() -> None:
    clock = Clock()
    telegram = FakeAdapter("telegram")
    router = _router(
        {
            "channels": {"telegram": {"rateLimit": {"max": 3, "window": 60000}}},
            "defaultChannels": ["telegram"],
        },
        telegram,
        clock=clock,
    )

    async def scenario() -> list:
        results = [await router.notify(f"event {i}") for i in range(4)]
        await router.tick(clock.advance(10))
        after_early_tick = len(telegram.sent)
        await router.tick(clock.advance(51))
        return [results, after_early_tick]

    results, after_early_tick = asyncio.run(scenario())

    assert [r.successful for r in results[:3]] == [1, 1, 1]
    assert results[3].queued == ("telegram",)
    assert results[3].total == 0
    assert after_early_tick == 3
    assert [text for text, _ in telegram.sent] == ["event 0", "event 1", "event 2", "event 3"]
    assert router.queue_size == 0


def test_partial_failure_is_reported_per_channel() -> None:
    router = _router(
        {"channels": {"telegram": {}, "discord": {}}},
        FakeAdapter("telegram"),
        FakeAdapter("discord", fail=True),
    )

    result = asyncio.run(router.notify("deploy done", {"channels": ["telegram", "discord"]}))

    assert isinstance(result, DeliveryResult)
    assert (result.successful, result.failed, result.total) == (1, 1, 2)
    assert result.success is True
    assert result.to_dict()["outcomes"][1] == {"channel": "discord", "success": False, "error": "discord is down"}


def test_global_limit_queue_never_loses_messages() -> None:
    clock = Clock()
    console = FakeAdapter("console")
    router = _router(
        {
            "channels": {"console": {}},
            "globalRateLimit": {"max": 1, "window": 60000},
        },
        console,
        clock=clock,
    )

    async def scenario() -> list[int]:
        sizes = []
        for text in ("first", "second", "third"):
            await router.notify(text)
        sizes.append(router.queue_size)
        await router.tick(clock.advance(61))
        sizes.append(router.queue_size)
        await router.tick(clock.advance(61))
        sizes.append(router.queue_size)
        return sizes

    assert asyncio.run(scenario()) == [2, 1, 0]
    assert [text for text, _ in console.sent] == ["first", "second", "third"]


def test_queued_item_for_disabled_channel_is_dropped() -> None:
    clock = Clock()
    telegram = FakeAdapter("telegram")
    router = _router(
        {"channels": {"telegram": {"rateLimit": {"max": 1, "window": 1000}}}},
        telegram,
        clock=clock,
    )

    async def scenario() -> None:
        await router.notify("one")
        await router.notify("two")
        telegram.enabled = False
        await router.tick(clock.advance(2))

    asyncio.run(scenario())

    assert router.queue_size == 0
    assert [text for text, _ in telegram.sent] == ["one"]


def test_aggregation_flushes_one_summary_at_max_size() -> None:
    console = FakeAdapter("console")
    router = _router(
        {
            "channels": {"console": {}},
            "aggregation": {"enabled": True, "window": 60000, "maxSize": 5, "similarityThreshold": 0.7},
        },
        console,
    )

    async def scenario() -> list:
        return [await router.notify(f"build failed on runner {i}", {"type": "error"}) for i in range(5)]

    results = asyncio.run(scenario())

    assert all(isinstance(r, AggregatedResult) for r in results[:4])
    assert [r.group_size for r in results[:4]] == [1, 2, 3, 4]
    assert isinstance(results[4], DeliveryResult)
    assert len(console.sent) == 1
    text, options = console.sent[0]
    assert options["aggregated"] is True
    assert options["count"] == 5
    assert "build failed on runner 0" in text


def test_aggregation_window_flushes_on_tick() -> None:
    clock = Clock()
    console = FakeAdapter("console")
    router = _router(
        {"channels": {"console": {}}, "aggregation": {"enabled": True, "window": 30000}},
        console,
        clock=clock,
    )

    async def scenario() -> None:
        await router.notify("disk almost full on laptop")
        await router.notify("disk almost full on desktop")
        await router.tick(clock.advance(29))
        assert console.sent == []
        await router.tick(clock.advance(1))

    asyncio.run(scenario())

    assert len(console.sent) == 1
    assert console.sent[0][1]["count"] == 2


def test_shutdown_flushes_held_notifications() -> None:
    console = FakeAdapter("console")
    router = _router(
        {"channels": {"console": {}}, "aggregation": {"enabled": True, "maxSize": 10}},
        console,
    )

    async def scenario() -> None:
        await router.notify("backup finished for host a")
        await router.notify("backup finished for host b")
        await router.notify("something unrelated entirely")
        await router.shutdown()

    asyncio.run(scenario())

    texts = [text for text, _ in console.sent]
    assert len(texts) == 2
    assert texts[1] == "something unrelated entirely"
    assert router.get_status()["pendingAggregations"] == 0


def test_dnd_lets_critical_through_at_night() -> None:
    console = FakeAdapter("console")
    router = _router(
        {"channels": {"console": {}}, "dndMode": {"enabled": True}},
        console,
        clock=Clock(datetime(2024, 1, 2, 2, 0)),
    )

    async def scenario() -> list:
        return [
            await router.notify("server down", {"priority": "critical"}),
            await router.notify("server down", {"priority": "low"}),
        ]

    critical, low = asyncio.run(scenario())

    assert isinstance(critical, DeliveryResult) and critical.success
    assert isinstance(low, SuppressedResult)
    assert low.to_dict() == {"suppressed": True, "reason": "dnd"}
    assert len(console.sent) == 1


def test_no_enabled_channels_is_an_error_result() -> None:
    router = _router({"channels": {"slack": {"enabled": False}}})

    result = asyncio.run(router.notify("hello"))

    assert result.error == NO_CHANNELS_SELECTED
    assert result.success is False


def test_empty_text_is_rejected() -> None:
    router = _router({"channels": {"console": {}}}, FakeAdapter("console"))
    assert asyncio.run(router.notify("   ")).error == "empty notification text"


def test_rules_route_by_type() -> None:
    telegram = FakeAdapter("telegram")
    console = FakeAdapter("console")
    router = _router(
        {
            "channels": {"console": {}, "telegram": {}},
            "notificationRules": [{"name": "errors", "type": "error", "channels": ["telegram"]}],
            "defaultChannels": ["console"],
        },
        console,
        telegram,
    )

    async def scenario() -> None:
        await router.notify("job crashed", {"type": "error", "module": "worker"})
        await router.notify("job finished", {"type": "info"})

    asyncio.run(scenario())

    assert [text for text, _ in telegram.sent] == ["job crashed"]
    assert telegram.sent[0][1] == {"type": "error", "module": "worker"}
    assert [text for text, _ in console.sent] == ["job finished"]


def test_feedback_is_persisted_and_learned() -> None:
    storage = FakeStorage()
    router = _router({"channels": {"console": {}}}, FakeAdapter("console"), storage=storage)

    result = asyncio.run(router.notify("nightly build green"))

    assert storage.history[0].record_id == result.record_id
    assert router.record_feedback(result.record_id, "positive") is True
    assert router.record_feedback(999, "positive") is False
    assert storage.feedback == {result.record_id: "positive"}
    assert storage.preferences["console"].score == pytest.approx(0.6)
    assert router.get_status()["channels"]["console"]["preference"] == pytest.approx(0.6)


def test_restore_continues_history_ids() -> None:
    storage = FakeStorage()
    storage.history.append(HistoryRecord(record_id=41, timestamp=START, text="old", channels=("console",)))
    router = _router({"channels": {"console": {}}}, FakeAdapter("console"), storage=storage)
    router.restore()

    result = asyncio.run(router.notify("new"))

    assert result.record_id == 42
    assert len(router.history) == 2


def test_tick_prunes_old_history() -> None:
    clock = Clock()
    storage = FakeStorage()
    router = _router({"channels": {"console": {}}}, FakeAdapter("console"), clock=clock, storage=storage)

    asyncio.run(router.notify("old news"))
    asyncio.run(router.tick(clock.advance(31 * 24 * 3600)))

    assert len(router.history) == 0
    assert storage.history == []


def test_status_snapshot() -> None:
    console = FakeAdapter("console")
    router = _router(
        {
            "channels": {
                "console": {"rateLimit": {"max": 5, "window": 1000}},
                "email": {"enabled": False, "host": "smtp.example.com"},
            },
            "notificationRules": [{"channels": ["console"]}],
        },
        console,
    )
    asyncio.run(router.notify("hello"))

    status = router.get_status()

    assert status["channels"]["console"] == {
        "enabled": True,
        "adapter": "console",
        "rateLimit": {"max": 5, "window": 1000},
        "preference": None,
    }
    assert status["channels"]["email"]["enabled"] is False
    assert status["rules"] == 1
    assert status["queueSize"] == 0
    assert status["rateLimits"]["channel:console"]["count"] == 1
    assert status["historySize"] == 1


def test_malformed_options_still_return_a_result() -> None:
    console = FakeAdapter("console")
    router = _router({"channels": {"console": {}}}, console)

    async def scenario() -> list:
        return [
            await router.notify("hello", {"count": "many"}),
            await router.notify("hello", {"keywords": 5, "channels": 7}),
            await router.notify("hello", ["not", "a", "mapping"]),
        ]

    results = asyncio.run(scenario())

    assert all(isinstance(result, DeliveryResult) and result.success for result in results)
    assert len(console.sent) == 3
    assert all(options == {} for _, options in console.sent)


def test_producer_cannot_mark_a_notification_as_aggregated() -> None:
    console = FakeAdapter("console")
    router = _router(
        {"channels": {"console": {}}, "aggregation": {"enabled": True, "maxSize": 5}},
        console,
    )

    async def scenario():
        held = await router.notify("disk full on host", {"aggregated": True, "count": 99})
        await router.shutdown()
        return held

    held = asyncio.run(scenario())

    assert isinstance(held, AggregatedResult)
    assert held.group_size == 1
    assert console.sent == [("disk full on host", {})]


def test_status_lists_queued_items_with_attempts() -> None:
    clock = Clock()
    router = _router(
        {"channels": {"telegram": {"rateLimit": {"max": 1, "window": 60000}}}},
        FakeAdapter("telegram"),
        clock=clock,
    )

    async def scenario() -> None:
        await router.notify("one")
        await router.notify("two")
        await router.tick(clock.advance(5))

    asyncio.run(scenario())

    assert router.get_status()["queue"] == [
        {"channels": ["telegram"], "attempts": 1, "enqueuedAt": START.isoformat()}
    ]
