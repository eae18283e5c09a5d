"""Cache-aside layer for profile reads.

The user repository is the system of record. The cache is consulted first,
refilled on a miss and evicted on every account mutation. Mutations also
leave a changed_at watermark so a read that raced the write is not cached.
Cache trouble of any kind (backend down, corrupt entry) degrades to a
repository read; it never fails the request.
"""

import logging
from datetime import datetime

from pydantic import ValidationError as PydanticValidationError

from auth.config import AuthConfig
from auth.protocols import Cache
from auth.types import UserProfile

logger = logging.getLogger(__name__)


class ProfileCache:
    """Stores UserProfile projections under profile:user_id:<id>."""

    KEY_PREFIX = "profile:user_id:"
    CHANGED_PREFIX = "profile:changed_at:"

    def __init__(self, cache: Cache, config: AuthConfig):
        self._cache = cache
        self._ttl = config.profile_cache_ttl_seconds

    def _key(self, user_id: int) -> str:
        return f"{self.KEY_PREFIX}{user_id}"

    def _changed_key(self, user_id: int) -> str:
        return f"{self.CHANGED_PREFIX}{user_id}"

    async def get(self, user_id: int) -> UserProfile | None:
        """Cached profile, or None on miss, backend error or undecodable entry."""
        try:
            raw = await self._cache.get(self._key(user_id))
        except Exception:
            logger.exception("Profile cache read failed for user_id=%s", user_id)
            return None

        if raw is None:
            return None

        try:
            return UserProfile.model_validate_json(raw)
        except PydanticValidationError:
            logger.warning("Discarding undecodable profile cache entry for user_id=%s", user_id)
            return None

    async def put(self, profile: UserProfile) -> None:
        """Populate the cache. Failures are logged only.

        Skipped when the account changed after this profile was read, so a
        slow reader cannot restore what a concurrent write just evicted.
        """
        try:
            changed_at = await self._cache.get(self._changed_key(profile.id))
            if changed_at is not None and profile.updated_at < datetime.fromisoformat(changed_at):
                logger.debug("Not caching stale profile for user_id=%s", profile.id)
                return
            await self._cache.set(
                self._key(profile.id),
                profile.model_dump_json(),
                expire_seconds=self._ttl,
            )
        except Exception:
            logger.exception("Profile cache populate failed for user_id=%s", profile.id)

    async def evict(self, user_id: int, changed_at: datetime | None = None) -> bool:
        """Drop the cached entry. Failures are logged only.

        changed_at is the account's new updated_at; profiles read before it
        are refused by put() for the lifetime of a cache entry.

        Returns whether an entry existed (False when the backend failed).
        """
        try:
            if changed_at is not None:
                await self._cache.set(
                    self._changed_key(user_id),
                    changed_at.isoformat(),
                    expire_seconds=self._ttl,
                )
            return await self._cache.delete(self._key(user_id))
        except Exception:
            logger.exception("Profile cache eviction failed for user_id=%s", user_id)
            return False
