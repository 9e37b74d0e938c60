"""Broker transport backed by asyncio-mqtt.

One :class:`MQTTConnection` wraps one ``asyncio_mqtt.Client`` session. Each
:class:`MQTTSubscription` owns a filtered message stream on that session, so
several subscriptions can share a connection without seeing each other's
traffic.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, AsyncContextManager, AsyncIterator, Optional
from uuid import uuid4

import asyncio_mqtt as mqtt

from horizon.config import BroadcastConfig, parse_broker_url

if TYPE_CHECKING:  # pragma: no cover - typing only
    from paho.mqtt.client import MQTTMessage

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class BrokerMessage:
    """Raw message as received from the broker."""

    topic: str
    payload: bytes


def _payload_bytes(payload_raw: Any) -> Optional[bytes]:
    if isinstance(payload_raw, bytes):
        return payload_raw
    if isinstance(payload_raw, bytearray):
        return bytes(payload_raw)
    if isinstance(payload_raw, str):
        return payload_raw.encode("utf-8")
    return None


class MQTTSubscription:
    """A single topic binding on an :class:`MQTTConnection`."""

    def __init__(
        self,
        client: mqtt.Client,
        topic: str,
        manager: AsyncContextManager[AsyncIterator[MQTTMessage]],
        stream: AsyncIterator[MQTTMessage],
    ) -> None:
        self.topic = topic
        self._client = client
        self._manager = manager
        self._stream = stream
        self._released = False

    @property
    def active(self) -> bool:
        return not self._released

    async def messages(self) -> AsyncIterator[BrokerMessage]:
        async for message in self._stream:
            payload = _payload_bytes(message.payload)
            if payload is None:
                logger.warning("Unexpected payload type %s, skipping", type(message.payload))
                continue
            yield BrokerMessage(topic=str(message.topic), payload=payload)

    async def unsubscribe(self) -> None:
        """Unsubscribe from the broker and drop the filtered stream.

        Safe to call more than once.
        """
        if self._released:
            return
        self._released = True
        try:
            await self._client.unsubscribe(self.topic)
        finally:
            await self._manager.__aexit__(None, None, None)
        logger.debug("Unsubscribed from topic: %s", self.topic)


class MQTTConnection:
    """One asyncio-mqtt client session."""

    def __init__(self, client: mqtt.Client, *, qos: int = 0) -> None:
        self._client = client
        self._qos = qos
        self._closed = False

    @property
    def client(self) -> mqtt.Client:
        """Underlying asyncio-mqtt client for advanced operations."""
        return self._client

    @property
    def closed(self) -> bool:
        return self._closed

    async def subscribe(self, topic: str) -> MQTTSubscription:
        """Bind to ``topic``. The filtered stream is registered before the
        broker subscription so no early message is lost.

        Raises:
            RuntimeError: If the connection has been closed
        """
        if self._closed:
            raise RuntimeError("Cannot subscribe: connection is closed")

        manager = self._client.filtered_messages(topic)
        stream = await manager.__aenter__()
        try:
            await self._client.subscribe(topic, qos=self._qos)
        except BaseException:
            await manager.__aexit__(None, None, None)
            raise

        logger.info("Subscribed to topic: %s (qos=%d)", topic, self._qos)
        return MQTTSubscription(self._client, topic, manager, stream)

    async def publish(self, topic: str, payload: bytes, *, retain: bool = False) -> None:
        if self._closed:
            raise RuntimeError("Cannot publish: connection is closed")
        await self._client.publish(topic, payload, qos=self._qos, retain=retain)

    async def close(self) -> None:
        """Disconnect from the broker, releasing every subscription on it.

        Safe to call more than once.
        """
        if self._closed:
            return
        self._closed = True
        await self._client.__aexit__(None, None, None)
        logger.info("Disconnected from broker")


class MQTTConnector:
    """Open :class:`MQTTConnection` sessions from ``mqtt://`` endpoints.

    ``client_id`` is a prefix. Each connection connects as
    ``{client_id}-{8 hex chars}``, so no two sessions from one connector share
    an id. Without a prefix the client library picks a random id.
    """

    def __init__(
        self,
        *,
        client_id: Optional[str] = None,
        keepalive: int = 60,
        qos: int = 0,
    ) -> None:
        self._client_id = client_id
        self._keepalive = keepalive
        self._qos = qos

    @classmethod
    def from_config(cls, config: BroadcastConfig) -> MQTTConnector:
        return cls(client_id=config.client_id, keepalive=config.keepalive, qos=config.qos)

    def _session_client_id(self) -> Optional[str]:
        if not self._client_id:
            return None
        return f"{self._client_id}-{uuid4().hex[:8]}"

    async def connect(self, endpoint: str) -> MQTTConnection:
        """Connect to the broker at ``endpoint``.

        Raises:
            ValueError: If the endpoint URL is invalid
            asyncio_mqtt.MqttError: If the broker is unreachable
        """
        params = parse_broker_url(endpoint)
        client_id = self._session_client_id()

        client = mqtt.Client(
            hostname=params.hostname,
            port=params.port,
            username=params.username,
            password=params.password,
            client_id=client_id,
            keepalive=self._keepalive,
        )

        # Entering the client context establishes the connection
        await client.__aenter__()

        logger.info("Connected to broker at %s (client_id=%s)", params.endpoint, client_id)
        return MQTTConnection(client, qos=self._qos)


__all__ = ["BrokerMessage", "MQTTConnection", "MQTTConnector", "MQTTSubscription"]
