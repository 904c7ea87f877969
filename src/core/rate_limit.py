"""Admission control with fixed time windows (global and per channel).

Checking and counting are separate steps: ``try_admit`` only decides, and
``commit`` counts the channels that actually move on to dispatch. A batch that
is only partially admitted therefore never counts its blocked channels.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Iterable, Optional

from core.config import RateLimitConfig
from core.registry import ChannelRegistry

GLOBAL_KEY = "global"


def channel_key(channel: str) -> str:
    return f"channel:{channel}"


@dataclass
class RateLimitWindow:
    key: str
    count: int
    window_reset_at: datetime


@dataclass(frozen=True)
class Admission:
    admitted: tuple[str, ...]
    blocked: tuple[str, ...]


class AdmissionController:
    """Owns every rate-limit window; single writer is the router."""

    def __init__(self, registry: ChannelRegistry, global_limit: Optional[RateLimitConfig] = None) -> None:
        self._registry = registry
        self._global_limit = global_limit
        self._windows: dict[str, RateLimitWindow] = {}

    def _window(self, key: str, limit: RateLimitConfig, now: datetime) -> RateLimitWindow:
        window = self._windows.get(key)
        if window is None or now >= window.window_reset_at:
            window = RateLimitWindow(
                key=key,
                count=0,
                window_reset_at=now + timedelta(milliseconds=limit.window_ms),
            )
            self._windows[key] = window
        return window

    def _exhausted(self, key: str, limit: RateLimitConfig, now: datetime) -> bool:
        return self._window(key, limit, now).count >= limit.max

    def try_admit(self, channels: Iterable[str], now: datetime) -> Admission:
        """Split ``channels`` into admitted and blocked without counting anything."""

        channels = tuple(channels)
        if self._global_limit is not None and channels:
            if self._exhausted(GLOBAL_KEY, self._global_limit, now):
                return Admission(admitted=(), blocked=channels)

        admitted: list[str] = []
        blocked: list[str] = []
        for channel in channels:
            limit = self._registry.rate_limit_of(channel)
            if limit is not None and self._exhausted(channel_key(channel), limit, now):
                blocked.append(channel)
            else:
                admitted.append(channel)
        return Admission(admitted=tuple(admitted), blocked=tuple(blocked))

    def commit(self, channels: Iterable[str], now: datetime) -> None:
        """Count one send for the batch globally and one per channel."""

        channels = tuple(channels)
        if not channels:
            return
        if self._global_limit is not None:
            self._window(GLOBAL_KEY, self._global_limit, now).count += 1
        for channel in channels:
            limit = self._registry.rate_limit_of(channel)
            if limit is not None:
                self._window(channel_key(channel), limit, now).count += 1

    def snapshot(self) -> dict[str, dict]:
        return {
            key: {"count": window.count, "resetAt": window.window_reset_at.isoformat()}
            for key, window in self._windows.items()
        }
