"""Adapter implementations bridging domain ports to infrastructure."""

from .health_http import HttpHealthProbe
from .mqtt_asyncio import BrokerMessage, MQTTConnection, MQTTConnector, MQTTSubscription

__all__ = ["BrokerMessage", "HttpHealthProbe", "MQTTConnection", "MQTTConnector", "MQTTSubscription"]
