"""Error types shared by the core and adapters."""

from __future__ import annotations

# Reason attached to a failed DeliveryResult when routing produced no channel.
NO_CHANNELS_SELECTED = "no channels selected"


class RelayError(Exception):
    """Base class for pulse-relay errors."""


class InvalidConfiguration(RelayError, ValueError):
    """Configuration rejected at startup."""


class AdapterSendFailed(RelayError):
    """A channel adapter could not deliver a message.

    Raised by adapters and captured into a DeliveryOutcome by the dispatcher;
    it never propagates out of NotificationRouter.notify().
    """

    def __init__(self, channel: str, message: str) -> None:
        super().__init__(f"{channel}: {message}")
        self.channel = channel
