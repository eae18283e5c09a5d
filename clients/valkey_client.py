"""
Valkey (Redis-compatible) client backing refresh sessions, the profile cache
and consumed verification-token markers.

Async wrapper over redis.asyncio; it satisfies the Cache protocol the auth
services depend on. Connection errors propagate: callers decide whether a
cache outage is fatal (session store) or tolerable (profile cache).
"""

import logging

import redis.asyncio as aioredis

logger = logging.getLogger(__name__)


class ValkeyClient:
    """
    String get/set/delete with optional per-key TTL.

    Usage:
        valkey = await ValkeyClient.connect("redis://localhost:6379/0")
        await valkey.set("session:abc", payload, expire_seconds=604800)
        payload = await valkey.get("session:abc")  # None once expired
    """

    def __init__(self, redis_client: aioredis.Redis):
        self._client = redis_client

    @classmethod
    async def connect(cls, url: str) -> "ValkeyClient":
        """Connect and ping. Raises redis.ConnectionError if Valkey is unreachable."""
        client = cls(aioredis.from_url(url, decode_responses=True))
        await client.ping()
        logger.info("ValkeyClient connected")
        return client

    async def ping(self) -> bool:
        await self._client.ping()
        return True

    async def get(self, key: str) -> str | None:
        """Value for key, or None when it is missing or expired."""
        return await self._client.get(key)

    async def set(self, key: str, value: str, expire_seconds: int | None = None) -> None:
        if expire_seconds is not None:
            await self._client.setex(key, expire_seconds, value)
        else:
            await self._client.set(key, value)

    async def delete(self, key: str) -> bool:
        """True if the key existed. Concurrent deletes of one key see True exactly once."""
        return await self._client.delete(key) > 0

    async def close(self) -> None:
        await self._client.aclose()
        logger.info("ValkeyClient closed")
