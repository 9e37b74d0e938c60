from __future__ import annotations

import logging
from typing import Any, Iterable, Optional

from horizon.config import BroadcastConfig
from horizon.domain.ports import BrokerConnection, BrokerConnector
from horizon.domain.topics import validate_topic
from horizon.errors import BrokerConnectError, PublishError

from .codec import encode_payload

logger = logging.getLogger(__name__)


class BroadcastPublisher:
    """Publish JSON payloads to broker topics over one long-lived connection."""

    def __init__(self, connector: BrokerConnector, *, endpoint: str) -> None:
        self._connector = connector
        self._endpoint = endpoint
        self._connection: Optional[BrokerConnection] = None

    @classmethod
    def from_config(cls, config: BroadcastConfig, *, connector: Optional[BrokerConnector] = None) -> BroadcastPublisher:
        from horizon.adapters import MQTTConnector

        return cls(connector or MQTTConnector.from_config(config), endpoint=config.broadcast_url)

    @property
    def running(self) -> bool:
        return self._connection is not None

    async def __aenter__(self) -> BroadcastPublisher:
        await self.run()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.stop()

    async def run(self) -> None:
        """Connect to the broker. No-op when already connected.

        Raises:
            BrokerConnectError: If the broker is unreachable
        """
        if self._connection is not None:
            logger.debug("Already connected, skipping run()")
            return
        try:
            self._connection = await self._connector.connect(self._endpoint)
        except Exception as exc:
            raise BrokerConnectError(f"failed to connect to broker: {exc}") from exc

    async def stop(self) -> None:
        """Close the connection. Safe to call when not running."""
        connection, self._connection = self._connection, None
        if connection is None:
            return
        try:
            await connection.close()
        except Exception as exc:
            logger.warning("Failed to close publisher connection: %s", exc)

    async def publish(self, topic: str, payload: Any) -> None:
        """Serialize ``payload`` to JSON and publish it to ``topic``.

        Raises:
            ValueError: If the topic is invalid
            PublishError: If not running, or serialization/transport fails
        """
        validate_topic(topic)
        connection = self._require_connection(topic)
        data = self._encode(payload, topic)
        await self._send(connection, topic, data)

    async def dispatch_batch(self, topics: Iterable[str], payload: Any) -> None:
        """Publish one payload to several topics, in order.

        Stops at the first failing topic.
        """
        topics = [validate_topic(topic) for topic in topics]
        if not topics:
            return
        connection = self._require_connection(topics[0])
        data = self._encode(payload, topics[0])
        for topic in topics:
            await self._send(connection, topic, data)

    def _require_connection(self, topic: str) -> BrokerConnection:
        if self._connection is None:
            raise PublishError("Cannot publish: broker connection not initialized", topic=topic)
        return self._connection

    @staticmethod
    def _encode(payload: Any, topic: str) -> bytes:
        try:
            return encode_payload(payload)
        except TypeError as exc:
            raise PublishError(f"failed to marshal payload for topic {topic}: {exc}", topic=topic) from exc

    @staticmethod
    async def _send(connection: BrokerConnection, topic: str, data: bytes) -> None:
        try:
            await connection.publish(topic, data)
        except Exception as exc:
            raise PublishError(f"failed to publish to topic {topic}: {exc}", topic=topic) from exc
        logger.debug("Published to %s (%d bytes)", topic, len(data))


__all__ = ["BroadcastPublisher"]
