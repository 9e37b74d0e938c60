"""Real-time topic subscriptions for the Horizon web front-end."""

from horizon.config import BroadcastConfig
from horizon.errors import (
    BroadcastError,
    BrokerConnectError,
    PayloadDecodeError,
    PublishError,
    StreamError,
    SubscribeError,
)
from horizon.runtime.publisher import BroadcastPublisher
from horizon.runtime.subscription import DetachFn, ScopeState, SubscriptionManager, SubscriptionScope

__version__ = "0.1.0"

__all__ = [
    "BroadcastConfig",
    "BroadcastError",
    "BroadcastPublisher",
    "BrokerConnectError",
    "DetachFn",
    "PayloadDecodeError",
    "PublishError",
    "ScopeState",
    "StreamError",
    "SubscribeError",
    "SubscriptionManager",
    "SubscriptionScope",
]
