"""Concurrent fan-out of one notification to its admitted channels."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Sequence

from core.models import DeliveryOutcome, DeliveryResult, Notification
from core.registry import ChannelRegistry

LOGGER = logging.getLogger(__name__)


class Dispatcher:
    """Sends to every channel at once and joins all outcomes.

    One channel failing (or raising) never aborts its siblings; each failure
    becomes a ``DeliveryOutcome`` with ``success=False``.
    """

    def __init__(self, registry: ChannelRegistry) -> None:
        self._registry = registry

    async def _send_one(self, channel: str, text: str, options: dict[str, Any]) -> None:
        adapter = self._registry.adapter_of(channel)
        if adapter is None:
            raise LookupError(f"Notifier {channel} not found")
        if not self._registry.is_enabled(channel):
            raise RuntimeError(f"Notifier {channel} is disabled")
        await adapter.send(text, options)

    async def dispatch(self, notification: Notification, channels: Sequence[str]) -> DeliveryResult:
        options = notification.adapter_options()
        results = await asyncio.gather(
            *(self._send_one(channel, notification.text, dict(options)) for channel in channels),
            return_exceptions=True,
        )

        outcomes: list[DeliveryOutcome] = []
        for channel, result in zip(channels, results):
            if isinstance(result, BaseException):
                LOGGER.warning("Failed to send to %s: %s", channel, result)
                outcomes.append(DeliveryOutcome(channel=channel, success=False, error=str(result) or type(result).__name__))
            else:
                LOGGER.info("Sent to %s: success", channel)
                outcomes.append(DeliveryOutcome(channel=channel, success=True))
        return DeliveryResult(outcomes=tuple(outcomes))

    async def test_all(self) -> dict[str, dict[str, Any]]:
        """Run every registered adapter's self-test."""

        names = [name for name in self._registry.names() if self._registry.adapter_of(name) is not None]

        async def _test(name: str) -> dict[str, Any]:
            try:
                return await self._registry.adapter_of(name).test()
            except Exception as exc:
                return {"success": False, "message": str(exc)}

        results = await asyncio.gather(*(_test(name) for name in names))
        return dict(zip(names, results))
