"""
Event publication for account lifecycle events.

EventBus is the in-process publisher: subscribers keyed by topic, called in
subscription order. It backs local development and tests; production wires
KafkaEventPublisher instead.

EventDispatcher sits between the account services and whichever publisher is
configured. Publishing is best-effort: the account write has already
committed, so failures and timeouts are logged and never propagate.
"""

import asyncio
import inspect
import logging
from typing import Any, Callable, Dict, List

from auth.config import AuthConfig
from auth.protocols import EventPublisher
from core.events import AccountEvent, UserLoggedIn, UserRegistered, VerificationResent

logger = logging.getLogger(__name__)


class EventBus:
    """
    In-process event publisher.

    Subscribe by topic name, publish payload dicts. Handlers may be plain
    functions or coroutines. Handler errors are logged but do not propagate.
    """

    def __init__(self):
        self._subscribers: Dict[str, List[Callable]] = {}

    def subscribe(self, topic: str, callback: Callable):
        """
        Subscribe to a topic.

        Args:
            topic: Topic name (e.g. 'user.registered')
            callback: Called as callback(key, payload)
        """
        if topic not in self._subscribers:
            self._subscribers[topic] = []
        self._subscribers[topic].append(callback)

    async def publish(
        self, topic: str, key: str, payload: dict[str, Any], timeout: float
    ) -> None:
        """Deliver payload to every subscriber of topic."""
        for callback in self._subscribers.get(topic, []):
            try:
                result = callback(key, payload)
                if inspect.isawaitable(result):
                    await asyncio.wait_for(result, timeout=timeout)
            except Exception:
                logger.exception(
                    "Handler %s failed for topic %s (key=%s)",
                    getattr(callback, "__name__", repr(callback)),
                    topic,
                    key,
                )


class EventDispatcher:
    """Maps events to topics and publishes them with a bounded timeout."""

    def __init__(self, publisher: EventPublisher, config: AuthConfig):
        self._publisher = publisher
        self._timeout = config.event_publish_timeout_seconds
        self._topics = {
            UserRegistered: config.user_registered_topic,
            UserLoggedIn: config.user_logged_in_topic,
            VerificationResent: config.verification_resent_topic,
        }

    def topic_for(self, event: AccountEvent) -> str:
        return self._topics[type(event)]

    async def dispatch(self, event: AccountEvent) -> bool:
        """
        Publish event. Returns True on ack, False if it was dropped.

        The caller's response never waits longer than the publish timeout.
        """
        topic = self.topic_for(event)
        try:
            await asyncio.wait_for(
                self._publisher.publish(
                    topic, event.partition_key, event.to_payload(), self._timeout
                ),
                timeout=self._timeout,
            )
        except asyncio.TimeoutError:
            logger.error(
                "Timed out publishing %s for user_id=%s after %.1fs",
                event.event_type,
                event.user_id,
                self._timeout,
            )
            return False
        except Exception:
            logger.exception(
                "Failed to publish %s for user_id=%s (event_id=%s)",
                event.event_type,
                event.user_id,
                event.event_id,
            )
            return False

        logger.info("%s event published for user_id=%s", event.event_type, event.user_id)
        return True
