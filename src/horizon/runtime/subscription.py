"""Topic subscriptions bound to an explicit lifecycle scope.

``SubscriptionManager.attach()`` returns a :class:`SubscriptionScope` that
owns one connection, one subscription handle and one background task. The
scope runs probe -> connect -> subscribe -> consume and is torn down by
``scope.detach()``, which is idempotent and safe at any point of setup.

Example:
    ```python
    manager = SubscriptionManager.from_config(BroadcastConfig.from_env())

    scope = manager.attach("feedback.create", refresh_list, show_error, shape=Feedback)
    ...
    await scope.detach()

    # or bind teardown to a block
    async with manager.attach("feedback.update", refresh_list, show_error):
        await view_closed.wait()
    ```
"""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import Any, Awaitable, Callable, Generic, Optional, TypeVar

from horizon.config import BroadcastConfig
from horizon.domain.ports import BrokerConnection, BrokerConnector, BrokerSubscription, LivenessProbe
from horizon.domain.topics import validate_topic
from horizon.errors import (
    BroadcastError,
    BrokerConnectError,
    PayloadDecodeError,
    StreamError,
    SubscribeError,
)

from .codec import Parser, PayloadDecoder

logger = logging.getLogger(__name__)

T = TypeVar("T")

MessageHandler = Callable[[T], None]
ErrorHandler = Callable[[BroadcastError], None]
DetachFn = Callable[[], Awaitable[None]]


class ScopeState(str, Enum):
    IDLE = "idle"
    PROBING = "probing"
    CONNECTING = "connecting"
    SUBSCRIBING = "subscribing"
    CONSUMING = "consuming"
    CLOSED = "closed"


class SubscriptionScope(Generic[T]):
    """One attach/detach lifecycle for a single topic.

    The lifecycle token (``cancelled``) is set exactly once by ``detach()``
    and checked before every handler invocation, so nothing is delivered or
    reported after it flips.
    """

    def __init__(
        self,
        topic: str,
        on_message: MessageHandler[T],
        on_error: ErrorHandler,
        *,
        connector: BrokerConnector,
        endpoint: str,
        decoder: PayloadDecoder[T],
        probe: Optional[LivenessProbe] = None,
        teardown_timeout: float = 1.0,
    ) -> None:
        self.topic = topic
        self._on_message = on_message
        self._on_error = on_error
        self._connector = connector
        self._endpoint = endpoint
        self._decoder = decoder
        self._probe = probe
        self._teardown_timeout = teardown_timeout

        self._state = ScopeState.IDLE
        self._cancelled = False
        self._connection: Optional[BrokerConnection] = None
        self._subscription: Optional[BrokerSubscription] = None
        self._task: Optional[asyncio.Task[None]] = None
        self._teardown: Optional[asyncio.Task[None]] = None

    @property
    def state(self) -> ScopeState:
        return self._state

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def start(self) -> SubscriptionScope[T]:
        """Schedule setup on the running loop.

        Raises:
            RuntimeError: If already started or no event loop is running
        """
        if self._task is not None:
            raise RuntimeError(f"Subscription scope for {self.topic!r} already started")
        loop = asyncio.get_running_loop()
        self._task = loop.create_task(self._run(), name=f"broadcast:{self.topic}")
        return self

    def detach(self) -> asyncio.Future[None]:
        """Cancel the subscription and release its resources.

        The token is set before this returns, so no handler runs after the
        call even if the returned future is never awaited. Later calls return
        the same future.
        """
        if self._teardown is None:
            self._cancelled = True
            consuming = self._state is ScopeState.CONSUMING
            self._state = ScopeState.CLOSED
            self._teardown = asyncio.get_running_loop().create_task(
                self._close(consuming), name=f"broadcast-teardown:{self.topic}"
            )
        return self._teardown

    async def wait_closed(self) -> None:
        """Wait until the background task and any teardown have finished."""
        if self._task is not None:
            await asyncio.gather(self._task, return_exceptions=True)
        if self._teardown is not None:
            await self._teardown

    async def __aenter__(self) -> SubscriptionScope[T]:
        return self

    async def __aexit__(
        self,
        exc_type: Optional[type[BaseException]],
        exc_val: Optional[BaseException],
        exc_tb: Optional[Any],
    ) -> None:
        await self.detach()

    # --- Setup ---

    async def _run(self) -> None:
        if self._cancelled:
            return
        self._state = ScopeState.PROBING
        await self._check_liveness()
        if self._cancelled:
            return

        self._state = ScopeState.CONNECTING
        try:
            connection = await self._connector.connect(self._endpoint)
        except Exception as exc:
            self._fail(BrokerConnectError(f"Failed to connect to broker: {exc}", topic=self.topic), exc)
            return

        self._connection = connection
        if self._cancelled:
            logger.debug("Detached during connect, closing connection for %s", self.topic)
            await self._release()
            return

        self._state = ScopeState.SUBSCRIBING
        try:
            subscription = await connection.subscribe(self.topic)
        except Exception as exc:
            self._fail(SubscribeError(f"Failed to subscribe to {self.topic}: {exc}", topic=self.topic), exc)
            await self._release()
            return

        self._subscription = subscription
        if self._cancelled:
            logger.debug("Detached during subscribe, releasing %s", self.topic)
            await self._release()
            return

        self._state = ScopeState.CONSUMING
        logger.info("connected to: %s", self.topic)
        await self._consume(subscription)

        if not self._cancelled:
            self._state = ScopeState.CLOSED
            await self._release()

    async def _check_liveness(self) -> None:
        if self._probe is None:
            return
        try:
            body = await self._probe.check()
        except Exception as exc:
            logger.warning("Health probe failed: %s", exc, extra={"topic": self.topic})
            return
        if body is not None:
            logger.info("Health: %s", body)

    def _fail(self, error: BroadcastError, cause: BaseException) -> None:
        error.__cause__ = cause
        if self._cancelled:
            logger.debug("Ignoring %s after detach: %s", type(error).__name__, error)
            return
        self._state = ScopeState.CLOSED
        logger.error("%s", error, extra={"topic": self.topic})
        self._report(error)

    # --- Consume loop ---

    async def _consume(self, subscription: BrokerSubscription) -> None:
        try:
            async for message in subscription.messages():
                if self._cancelled:
                    break
                try:
                    value = self._decoder.decode(message.payload, topic=self.topic)
                except PayloadDecodeError as exc:
                    logger.warning(
                        "Dropping malformed message on %s: %s", self.topic, exc, extra={"preview": exc.preview}
                    )
                    self._report(exc)
                    continue
                self._deliver(value)
        except asyncio.CancelledError:
            logger.debug("Consume task for %s cancelled", self.topic)
            raise
        except Exception as exc:
            if self._cancelled:
                logger.debug("Stream for %s failed after detach: %s", self.topic, exc)
                return
            error = StreamError(f"Message stream for {self.topic} failed: {exc}", topic=self.topic)
            error.__cause__ = exc
            logger.error("%s", error, exc_info=True)
            self._report(error)
            return

        if not self._cancelled:
            logger.info("Message stream for %s ended", self.topic)

    def _deliver(self, value: T) -> None:
        if self._cancelled:
            return
        logger.debug("Delivering message on %s", self.topic)
        try:
            self._on_message(value)
        except Exception as exc:
            logger.error("Error in message handler for topic %s: %s", self.topic, exc, exc_info=True)

    def _report(self, error: BroadcastError) -> None:
        if self._cancelled:
            return
        try:
            self._on_error(error)
        except Exception as exc:
            logger.error("Error in error handler for topic %s: %s", self.topic, exc, exc_info=True)

    # --- Teardown ---

    async def _close(self, consuming: bool) -> None:
        # Setup steps in flight are not aborted; they see the token on resume
        # and release whatever they produced.
        task = self._task
        if consuming and task is not None and not task.done():
            task.cancel()
            try:
                await asyncio.wait_for(task, timeout=self._teardown_timeout)
            except (asyncio.CancelledError, asyncio.TimeoutError):
                pass
        await self._release()
        logger.debug("Detached from %s", self.topic)

    async def _release(self) -> None:
        subscription, self._subscription = self._subscription, None
        connection, self._connection = self._connection, None

        if subscription is not None:
            try:
                await subscription.unsubscribe()
            except Exception as exc:
                logger.warning("Failed to unsubscribe from %s: %s", self.topic, exc)

        if connection is not None:
            try:
                await connection.close()
            except Exception as exc:
                logger.warning("Failed to close connection for %s: %s", self.topic, exc)


class SubscriptionManager:
    """Create :class:`SubscriptionScope` instances for topics.

    Every ``attach`` opens its own connection; scopes never share transport
    state.
    """

    def __init__(
        self,
        connector: BrokerConnector,
        *,
        endpoint: str,
        probe: Optional[LivenessProbe] = None,
        teardown_timeout: float = 1.0,
    ) -> None:
        self._connector = connector
        self._endpoint = endpoint
        self._probe = probe
        self._teardown_timeout = teardown_timeout
        self._scopes: set[SubscriptionScope[Any]] = set()

    @classmethod
    def from_config(
        cls,
        config: BroadcastConfig,
        *,
        connector: Optional[BrokerConnector] = None,
        probe: Optional[LivenessProbe] = None,
    ) -> SubscriptionManager:
        from horizon.adapters import HttpHealthProbe, MQTTConnector

        return cls(
            connector or MQTTConnector.from_config(config),
            endpoint=config.broadcast_url,
            probe=probe or HttpHealthProbe.from_config(config),
            teardown_timeout=config.teardown_timeout,
        )

    @property
    def active_scopes(self) -> list[SubscriptionScope[Any]]:
        """Scopes that are still setting up or consuming."""
        return [scope for scope in self._scopes if scope.state is not ScopeState.CLOSED]

    def attach(
        self,
        topic: str,
        on_message: MessageHandler[T],
        on_error: ErrorHandler,
        *,
        shape: Any = None,
        parser: Optional[Parser[T]] = None,
    ) -> SubscriptionScope[T]:
        """Start a subscription to ``topic``.

        Args:
            topic: Concrete topic name (no wildcards)
            on_message: Called with each decoded message, in broker order
            on_error: Called once per reported failure (connect, subscribe,
                malformed payload, stream failure)
            shape: Declared message type, validated with pydantic
            parser: Alternative to ``shape``: callable applied to decoded JSON

        Returns:
            The running scope; ``scope.detach`` is its detach function

        Raises:
            ValueError: If the topic is invalid or both shape and parser are given
            RuntimeError: If no event loop is running
        """
        validate_topic(topic)
        scope: SubscriptionScope[T] = SubscriptionScope(
            topic,
            on_message,
            on_error,
            connector=self._connector,
            endpoint=self._endpoint,
            decoder=PayloadDecoder(shape, parser=parser),
            probe=self._probe,
            teardown_timeout=self._teardown_timeout,
        )
        scope.start()
        self._scopes.add(scope)
        self._prune()
        return scope

    async def close(self) -> None:
        """Detach every scope created by this manager."""
        scopes = list(self._scopes)
        self._scopes.clear()
        if scopes:
            await asyncio.gather(*(scope.detach() for scope in scopes))

    def _prune(self) -> None:
        self._scopes = {scope for scope in self._scopes if scope.state is not ScopeState.CLOSED}


__all__ = [
    "DetachFn",
    "ErrorHandler",
    "MessageHandler",
    "ScopeState",
    "SubscriptionManager",
    "SubscriptionScope",
]
