"""Transport-agnostic ports and topic rules."""

from .ports import BrokerConnection, BrokerConnector, BrokerSubscription, LivenessProbe, RawMessage
from .topics import validate_topic

__all__ = [
    "BrokerConnection",
    "BrokerConnector",
    "BrokerSubscription",
    "LivenessProbe",
    "RawMessage",
    "validate_topic",
]
