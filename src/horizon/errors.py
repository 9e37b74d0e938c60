"""Exception taxonomy for broadcast subscriptions and publishing.

Errors reported through a subscription's ``on_error`` callback are always
instances of :class:`BroadcastError`. The original transport or parser
exception is chained as ``__cause__``.
"""

from __future__ import annotations

from typing import Optional


class BroadcastError(RuntimeError):
    """Base class for all broadcast failures."""

    def __init__(self, message: str, *, topic: Optional[str] = None) -> None:
        super().__init__(message)
        self.topic = topic


# --- Setup ---


class SetupError(BroadcastError):
    """A step of the probe/connect/subscribe sequence failed."""


class ProbeError(SetupError):
    """Liveness probe failed. Logged only, never reported to callers."""


class BrokerConnectError(SetupError):
    """Could not open a connection to the broker."""


class SubscribeError(SetupError):
    """Connection opened but binding to the topic failed."""


# --- Delivery ---


class DeliveryError(BroadcastError):
    """A single message could not be delivered to the handler."""


class PayloadDecodeError(DeliveryError):
    """Payload was not UTF-8 JSON or did not match the declared shape."""

    def __init__(self, message: str, *, topic: Optional[str] = None, preview: str = "") -> None:
        super().__init__(message, topic=topic)
        self.preview = preview


class StreamError(BroadcastError):
    """The message stream failed while consuming."""


# --- Publishing ---


class PublishError(BroadcastError):
    """Publishing to a topic failed."""


__all__ = [
    "BroadcastError",
    "SetupError",
    "ProbeError",
    "BrokerConnectError",
    "SubscribeError",
    "DeliveryError",
    "PayloadDecodeError",
    "StreamError",
    "PublishError",
]
