"""
Kafka producer for account lifecycle events.

Wraps aiokafka's AIOKafkaProducer. Payloads are JSON, keys are user ids so
one account's events stay ordered on one partition. Bootstrap servers come
from Vault.
"""

import asyncio
import json
import logging
from typing import Any

from aiokafka import AIOKafkaProducer

logger = logging.getLogger(__name__)


class KafkaEventPublisher:
    """
    Publishes event payloads to Kafka topics.

    Usage:
        publisher = await KafkaEventPublisher.connect("kafka:9092")
        await publisher.publish("user.registered", "42", {...}, timeout=5)
        await publisher.close()
    """

    def __init__(self, producer: AIOKafkaProducer):
        self._producer = producer

    @classmethod
    async def connect(
        cls, bootstrap_servers: str, client_id: str = "account-service"
    ) -> "KafkaEventPublisher":
        """Start a producer. Raises if the cluster is unreachable."""
        producer = AIOKafkaProducer(
            bootstrap_servers=bootstrap_servers,
            client_id=client_id,
            acks="all",
            value_serializer=lambda v: json.dumps(v).encode("utf-8"),
            key_serializer=lambda k: k.encode("utf-8"),
        )
        await producer.start()
        logger.info("KafkaEventPublisher connected to %s", bootstrap_servers)
        return cls(producer)

    async def publish(
        self, topic: str, key: str, payload: dict[str, Any], timeout: float
    ) -> None:
        """
        Send and wait for the broker ack.

        Raises:
            asyncio.TimeoutError: If no ack within timeout.
            aiokafka.errors.KafkaError: On delivery failure.
        """
        await asyncio.wait_for(
            self._producer.send_and_wait(topic, value=payload, key=key),
            timeout=timeout,
        )

    async def close(self) -> None:
        """Flush pending sends and stop the producer."""
        await self._producer.stop()
        logger.info("KafkaEventPublisher closed")
