"""Core notification routing pipeline.

This module is integration-agnostic. It only relies on ports for channel
adapters and history storage, enabling other frontends or adapters without
changes here.

The pipeline enforces a strict order for every notification:
1) Build an immutable Notification from the producer's text and options
2) Do-not-disturb check (drop)
3) Optional aggregation hold
4) Rule matching + preference ranking
5) Admission check per channel; blocked channels are queued
6) Concurrent dispatch of admitted channels
7) Record the dispatch in history for preference learning

All mutable state (rate-limit windows, aggregation groups, queue, history) is
owned here and is only touched from ``notify``/``tick``/``shutdown`` on the
event loop, never from adapter code.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Any, Callable, Iterable, Mapping, Optional

from core.aggregator import Aggregator
from core.config import RouterConfig
from core.delivery_queue import DeliveryQueue, QueuedItem
from core.dispatcher import Dispatcher
from core.dnd import should_suppress
from core.errors import NO_CHANNELS_SELECTED
from core.models import (
    AggregatedResult,
    DeliveryResult,
    Notification,
    NotifyResult,
    SuppressedResult,
    build_notification,
)
from core.ports import ChannelAdapter, HistoryStoragePort
from core.preferences import DeliveryHistory, PreferenceScorer
from core.rate_limit import AdmissionController
from core.registry import ChannelRegistry
from core.rules_engine import build_rules, select_channels

LOGGER = logging.getLogger(__name__)


def build_registry(config: RouterConfig, adapters: Mapping[str, ChannelAdapter]) -> ChannelRegistry:
    """Register every configured channel with its adapter (if one was built)."""

    registry = ChannelRegistry()
    for channel in config.channels:
        registry.register(channel.name, channel, adapters.get(channel.name))
    return registry


class NotificationRouter:
    """Orchestrates suppression, aggregation, routing, admission, and delivery."""

    def __init__(
        self,
        config: RouterConfig,
        registry: ChannelRegistry,
        storage: Optional[HistoryStoragePort] = None,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self._config = config
        self._registry = registry
        self._storage = storage
        self._clock = clock
        self._rules = build_rules(config.rules)
        self._admission = AdmissionController(registry, config.global_rate_limit)
        self._aggregator = Aggregator(config.aggregation)
        self._queue = DeliveryQueue()
        self._dispatcher = Dispatcher(registry)
        self._history = DeliveryHistory(config.learning.max_history_size)
        self._scorer = PreferenceScorer(
            config.learning,
            self._history,
            silent_channels=config.silent_channels,
            night_hours=config.night_hours,
        )

    @property
    def queue_size(self) -> int:
        return len(self._queue)

    @property
    def tick_interval(self) -> float:
        """Seconds between scheduler ticks."""

        return self._config.tick_interval_ms / 1000

    @property
    def history(self) -> DeliveryHistory:
        return self._history

    def restore(self) -> None:
        """Load persisted history and preferences, if a storage is attached."""

        if self._storage is None:
            return
        self._history.restore(self._storage.load_history(self._config.learning.max_history_size))
        self._scorer.restore(self._storage.load_preferences())
        LOGGER.info("Restored %s history records", len(self._history))

    async def notify(self, text: str, options: Optional[Mapping[str, Any]] = None) -> NotifyResult:
        """Route one producer event. Never raises for delivery problems."""

        now = self._clock()
        if not text or not text.strip():
            return DeliveryResult(error="empty notification text")

        notification = build_notification(text, options, now)

        if should_suppress(notification, self._config.dnd, now):
            LOGGER.info("Notification suppressed by DND mode")
            return SuppressedResult()

        offer = self._aggregator.offer(notification, now)
        if offer.summary is not None:
            return await self._route(offer.summary, now)
        if offer.held:
            return AggregatedResult(group_size=offer.group_size)

        return await self._route(notification, now)

    async def _route(self, notification: Notification, now: datetime) -> DeliveryResult:
        channels = select_channels(
            notification,
            self._rules,
            self._registry,
            default_channels=self._config.default_channels,
        )
        if not channels:
            LOGGER.warning("No channels selected for notification")
            return DeliveryResult(error=NO_CHANNELS_SELECTED)

        ranked = self._scorer.rank(channels, notification, now)
        admission = self._admission.try_admit(ranked, now)
        if admission.blocked:
            LOGGER.info("Rate limit exceeded for %s, queuing", ", ".join(admission.blocked))
            self._queue.enqueue(notification, admission.blocked, now)
        if not admission.admitted:
            return DeliveryResult(queued=admission.blocked)

        result = await self._dispatch(notification, admission.admitted, now)
        return DeliveryResult(
            outcomes=result.outcomes,
            queued=admission.blocked,
            record_id=result.record_id,
        )

    async def _dispatch(self, notification: Notification, channels: tuple[str, ...], now: datetime) -> DeliveryResult:
        # Counted before the await so concurrent notify() calls see the slot as used.
        self._admission.commit(channels, now)
        record = self._history.append(now, notification.text, channels)
        if self._storage is not None:
            self._storage.append_history(record)
        result = await self._dispatcher.dispatch(notification, channels)
        return DeliveryResult(outcomes=result.outcomes, record_id=record.record_id)

    async def drain_queue(self, now: Optional[datetime] = None) -> list[DeliveryResult]:
        """Retry queued items oldest-first until one is still rate limited."""

        now = now or self._clock()
        results: list[DeliveryResult] = []
        # Bounded by the starting length so re-queued items are not revisited.
        for _ in range(len(self._queue)):
            item = self._queue.pop()
            if item is None:
                break
            channels = tuple(ch for ch in item.channels if self._registry.is_enabled(ch))
            if not channels:
                LOGGER.warning("Dropping queued notification: channels %s are disabled", ", ".join(item.channels))
                continue
            admission = self._admission.try_admit(channels, now)
            if admission.admitted:
                results.append(await self._dispatch(item.notification, admission.admitted, now))
            if admission.blocked:
                self._queue.requeue(
                    QueuedItem(
                        notification=item.notification,
                        channels=admission.blocked,
                        enqueued_at=item.enqueued_at,
                        attempts=item.attempts,
                    )
                )
                break
        if results:
            LOGGER.info("Drained %s queued notifications, %s remaining", len(results), len(self._queue))
        return results

    async def _route_all(self, notifications: Iterable[Notification], now: datetime) -> list[DeliveryResult]:
        return [await self._route(notification, now) for notification in notifications]

    async def tick(self, now: Optional[datetime] = None) -> None:
        """Periodic driver: flush expired aggregation groups, drain, prune history."""

        now = now or self._clock()
        await self._route_all(self._aggregator.due(now), now)
        await self.drain_queue(now)

        cutoff = now - timedelta(days=self._config.learning.max_age_days)
        removed = self._history.prune(cutoff)
        if removed:
            LOGGER.info("Cleaned up %s old history records", removed)
            if self._storage is not None:
                self._storage.delete_history_before(cutoff)

    async def shutdown(self) -> None:
        """Flush every aggregation group so nothing held is lost, then drain once."""

        now = self._clock()
        flushed = self._aggregator.flush_all()
        if flushed:
            LOGGER.info("Flushing %s aggregation groups on shutdown", len(flushed))
        await self._route_all(flushed, now)
        await self.drain_queue(now)
        if len(self._queue):
            LOGGER.warning("%s queued notifications still rate limited at shutdown", len(self._queue))

    def record_feedback(self, record_id: int, feedback: str) -> bool:
        """Attach user feedback to a dispatch and learn from it."""

        record = self._history.attach_feedback(record_id, feedback)
        if record is None:
            return False
        if self._storage is not None:
            self._storage.set_feedback(record_id, feedback)
        for preference in self._scorer.learn(record):
            if self._storage is not None:
                self._storage.save_preference(preference)
        return True

    async def test_all(self) -> dict[str, dict[str, Any]]:
        return await self._dispatcher.test_all()

    def get_status(self) -> dict[str, Any]:
        """Read-only snapshot for dashboards and CLIs."""

        preferences = self._scorer.preferences
        channels = {}
        for name in self._registry.names():
            limit = self._registry.rate_limit_of(name)
            adapter = self._registry.adapter_of(name)
            channels[name] = {
                "enabled": self._registry.is_enabled(name),
                "adapter": getattr(adapter, "name", None),
                "rateLimit": {"max": limit.max, "window": limit.window_ms} if limit else None,
                "preference": preferences[name].score if name in preferences else None,
            }
        return {
            "channels": channels,
            "rules": len(self._rules),
            "queueSize": len(self._queue),
            "queue": [
                {
                    "channels": list(item.channels),
                    "attempts": item.attempts,
                    "enqueuedAt": item.enqueued_at.isoformat(),
                }
                for item in self._queue.items()
            ],
            "rateLimits": self._admission.snapshot(),
            "pendingAggregations": self._aggregator.pending_count(),
            "historySize": len(self._history),
        }
