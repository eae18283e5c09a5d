"""Tests for EventBus and EventDispatcher."""

import asyncio

import pytest

from auth.config import AuthConfig
from auth.types import UserAccount
from core.event_bus import EventBus, EventDispatcher
from core.events import UserLoggedIn, UserRegistered, VerificationResent
from utils.timezone import now_utc


@pytest.fixture
def account():
    now = now_utc()
    return UserAccount(
        id=3,
        email="sam@example.com",
        username="sam",
        first_name="Sam",
        verification_token="tok",
        created_at=now,
        updated_at=now,
    )


class TestEventBus:
    """In-process publisher."""

    @pytest.mark.asyncio
    async def test_sync_and_async_subscribers(self):
        bus = EventBus()
        received = []

        def sync_handler(key, payload):
            received.append(("sync", key, payload))

        async def async_handler(key, payload):
            received.append(("async", key, payload))

        bus.subscribe("user.registered", sync_handler)
        bus.subscribe("user.registered", async_handler)

        await bus.publish("user.registered", "3", {"a": 1}, timeout=1.0)

        assert received == [("sync", "3", {"a": 1}), ("async", "3", {"a": 1})]

    @pytest.mark.asyncio
    async def test_other_topics_not_delivered(self):
        bus = EventBus()
        received = []
        bus.subscribe("user.logged_in", lambda key, payload: received.append(key))

        await bus.publish("user.registered", "3", {}, timeout=1.0)

        assert received == []

    @pytest.mark.asyncio
    async def test_failing_handler_does_not_stop_others(self):
        bus = EventBus()
        received = []

        def broken(key, payload):
            raise RuntimeError("boom")

        bus.subscribe("t", broken)
        bus.subscribe("t", lambda key, payload: received.append(key))

        await bus.publish("t", "k", {}, timeout=1.0)

        assert received == ["k"]


class TestEventDispatcher:
    """Topic routing and best-effort publishing."""

    def test_topics(self, publisher, account):
        dispatcher = EventDispatcher(publisher, AuthConfig())

        assert dispatcher.topic_for(UserRegistered.create(account)) == "user.registered"
        assert dispatcher.topic_for(UserLoggedIn.create(account, "sid")) == "user.logged_in"
        assert (
            dispatcher.topic_for(VerificationResent.create(account))
            == "user.verification_resent"
        )

    @pytest.mark.asyncio
    async def test_dispatch_publishes_payload(self, publisher, account):
        dispatcher = EventDispatcher(publisher, AuthConfig())
        event = UserRegistered.create(account)

        assert await dispatcher.dispatch(event) is True
        assert publisher.published == [("user.registered", "3", event.to_payload())]

    @pytest.mark.asyncio
    async def test_publisher_error_returns_false(self, publisher, account):
        publisher.fail = True
        dispatcher = EventDispatcher(publisher, AuthConfig())

        assert await dispatcher.dispatch(UserRegistered.create(account)) is False

    @pytest.mark.asyncio
    async def test_slow_publisher_times_out(self, account):
        class SlowPublisher:
            async def publish(self, topic, key, payload, timeout):
                await asyncio.sleep(5)

        dispatcher = EventDispatcher(
            SlowPublisher(), AuthConfig(event_publish_timeout_seconds=0.05)
        )

        assert await dispatcher.dispatch(UserRegistered.create(account)) is False

    @pytest.mark.asyncio
    async def test_event_bus_as_publisher(self, account):
        bus = EventBus()
        received = []
        bus.subscribe("user.registered", lambda key, payload: received.append(payload["email"]))

        await EventDispatcher(bus, AuthConfig()).dispatch(UserRegistered.create(account))

        assert received == ["sam@example.com"]
