"""Integration tests against a real MQTT broker.

Set INTEGRATION_MQTT_URL (e.g. mqtt://localhost:1883) to run them.
"""

import asyncio

import pytest

from horizon.adapters import MQTTConnector
from horizon.contracts.v1 import FEEDBACK_TOPICS, TOPIC_FEEDBACK_CREATE, Feedback
from horizon.errors import BrokerConnectError
from horizon.runtime.publisher import BroadcastPublisher
from horizon.runtime.subscription import ScopeState, SubscriptionManager


async def _wait_for(predicate, timeout: float = 5.0) -> None:
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not reached")
        await asyncio.sleep(0.05)


@pytest.mark.integration
@pytest.mark.asyncio
class TestEndToEnd:
    async def test_published_feedback_is_delivered(self, mosquitto_url, recorder):
        manager = SubscriptionManager(MQTTConnector(), endpoint=mosquitto_url)
        scope = manager.attach(TOPIC_FEEDBACK_CREATE, recorder.on_message, recorder.on_error, shape=Feedback)

        try:
            await _wait_for(lambda: scope.state is ScopeState.CONSUMING)
            await asyncio.sleep(0.2)

            async with BroadcastPublisher(MQTTConnector(), endpoint=mosquitto_url) as publisher:
                await publisher.publish(TOPIC_FEEDBACK_CREATE, {"id": "42", "email": "a@b.com"})

            await _wait_for(lambda: len(recorder.messages) == 1)
            assert recorder.messages[0].email == "a@b.com"
            assert recorder.errors == []
        finally:
            await scope.detach()

    async def test_nothing_delivered_after_detach(self, mosquitto_url, recorder):
        manager = SubscriptionManager(MQTTConnector(), endpoint=mosquitto_url)
        scopes = [manager.attach(topic, recorder.on_message, recorder.on_error) for topic in FEEDBACK_TOPICS]

        await _wait_for(lambda: all(s.state is ScopeState.CONSUMING for s in scopes))
        await manager.close()

        async with BroadcastPublisher(MQTTConnector(), endpoint=mosquitto_url) as publisher:
            await publisher.dispatch_batch(FEEDBACK_TOPICS, {"id": "42"})
        await asyncio.sleep(0.5)

        assert recorder.messages == []
        assert all(s.state is ScopeState.CLOSED for s in scopes)

    async def test_unreachable_broker_reports_connect_error(self, recorder):
        manager = SubscriptionManager(MQTTConnector(), endpoint="mqtt://127.0.0.1:1")
        scope = manager.attach(TOPIC_FEEDBACK_CREATE, recorder.on_message, recorder.on_error)

        await asyncio.wait_for(scope.wait_closed(), timeout=10.0)

        assert len(recorder.errors) == 1
        assert isinstance(recorder.errors[0], BrokerConnectError)
