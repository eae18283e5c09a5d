"""Refresh session lifecycle.

Sessions are stored in Valkey under refresh_token:session:<sid> with a TTL
matching session expiry. The sid is also signed into the access and refresh
tokens, so deleting the record revokes the session regardless of token expiry.
"""

import json
import logging
from datetime import timedelta
from uuid import uuid4

from auth.config import AuthConfig
from auth.exceptions import SessionRevokedError
from auth.protocols import Cache
from auth.types import Session
from utils.timezone import now_utc, parse_iso

logger = logging.getLogger(__name__)


class SessionManager:
    """Creates, looks up and revokes refresh sessions."""

    KEY_PREFIX = "refresh_token:session:"

    def __init__(self, cache: Cache, config: AuthConfig):
        self._cache = cache
        self._config = config

    @property
    def ttl_seconds(self) -> int:
        return self._config.session_expiry_hours * 3600

    def _key(self, session_id: str) -> str:
        """Generate Valkey key for a session id."""
        return f"{self.KEY_PREFIX}{session_id}"

    @staticmethod
    def new_session_id() -> str:
        """Random, globally unique session identifier."""
        return str(uuid4())

    async def create_session(self, user_id: int, session_id: str | None = None) -> Session:
        """Store a new session record for user_id.

        Generates the session id unless one is supplied.
        """
        session_id = session_id or self.new_session_id()
        now = now_utc()
        session = Session(
            session_id=session_id,
            user_id=user_id,
            created_at=now,
            expires_at=now + timedelta(seconds=self.ttl_seconds),
        )

        await self._cache.set(
            self._key(session_id),
            json.dumps({
                "user_id": user_id,
                "created_at": session.created_at.isoformat(),
                "expires_at": session.expires_at.isoformat(),
            }),
            expire_seconds=self.ttl_seconds,
        )

        return session

    async def get_session(self, session_id: str) -> Session:
        """Load a live session.

        Raises:
            SessionRevokedError: If the record is missing, unreadable or expired.
        """
        raw = await self._cache.get(self._key(session_id))
        if raw is None:
            raise SessionRevokedError("Session not found or expired")

        try:
            data = json.loads(raw)
            session = Session(
                session_id=session_id,
                user_id=int(data["user_id"]),
                created_at=parse_iso(data["created_at"]),
                expires_at=parse_iso(data["expires_at"]),
            )
        except (ValueError, KeyError, TypeError) as e:
            logger.warning("Unreadable session record %s: %s", session_id, e)
            raise SessionRevokedError("Session record is invalid") from e

        # Valkey TTL should already have removed it
        if now_utc() > session.expires_at:
            await self._cache.delete(self._key(session_id))
            raise SessionRevokedError("Session expired")

        return session

    async def revoke_session(self, session_id: str) -> bool:
        """Delete the session record.

        Safe to call with a nonexistent id. Returns whether it existed.
        """
        return await self._cache.delete(self._key(session_id))
