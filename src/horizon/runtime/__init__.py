"""Runtime helpers: subscription scopes, publishing, codec and logging."""

from .codec import PayloadDecoder, encode_payload
from .publisher import BroadcastPublisher
from .subscription import DetachFn, ScopeState, SubscriptionManager, SubscriptionScope

__all__ = [
    "BroadcastPublisher",
    "DetachFn",
    "PayloadDecoder",
    "ScopeState",
    "SubscriptionManager",
    "SubscriptionScope",
    "encode_payload",
]
