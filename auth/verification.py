"""Email verification tokens.

Tokens are random UUIDs stored on the account row until verification clears
them. Once cleared the row can no longer be found by token, so a short-lived
marker keyed by the token's digest remembers which tokens were already
consumed. That lets a repeated verification report "already verified"
instead of "invalid token".
"""

import hashlib
import logging
from datetime import datetime, timedelta
from uuid import uuid4

from auth.config import AuthConfig
from auth.protocols import Cache

logger = logging.getLogger(__name__)


def generate_verification_token(now: datetime, expiry_hours: int) -> tuple[str, datetime]:
    """New (token, expires_at) pair."""
    return str(uuid4()), now + timedelta(hours=expiry_hours)


class ConsumedTokenStore:
    """Remembers verification tokens that have already been used."""

    KEY_PREFIX = "verification:consumed:"

    def __init__(self, cache: Cache, config: AuthConfig):
        self._cache = cache
        self._ttl = config.verification_token_expiry_hours * 3600

    def _key(self, token: str) -> str:
        # Never store the raw token
        digest = hashlib.sha256(token.encode("utf-8")).hexdigest()
        return f"{self.KEY_PREFIX}{digest}"

    async def mark(self, token: str, user_id: int) -> None:
        """Record token as consumed by user_id. Failures are logged only."""
        try:
            await self._cache.set(self._key(token), str(user_id), expire_seconds=self._ttl)
        except Exception:
            logger.exception("Failed to record consumed verification token for user_id=%s", user_id)

    async def was_consumed(self, token: str) -> bool:
        """Whether token was used for a verification within the marker lifetime."""
        try:
            return await self._cache.get(self._key(token)) is not None
        except Exception:
            logger.exception("Consumed verification token lookup failed")
            return False
