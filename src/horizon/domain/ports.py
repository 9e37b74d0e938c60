from __future__ import annotations

from typing import Any, AsyncIterator, Protocol


class RawMessage(Protocol):
    topic: str
    payload: bytes


class BrokerSubscription(Protocol):
    """One live binding between a topic and a connection."""

    topic: str

    def messages(self) -> AsyncIterator[RawMessage]: ...

    async def unsubscribe(self) -> None: ...


class BrokerConnection(Protocol):
    """A single transport session; may host several subscriptions."""

    async def subscribe(self, topic: str) -> BrokerSubscription: ...

    async def publish(self, topic: str, payload: bytes) -> None: ...

    async def close(self) -> None: ...


class BrokerConnector(Protocol):
    async def connect(self, endpoint: str) -> BrokerConnection: ...


class LivenessProbe(Protocol):
    async def check(self) -> Any: ...
