"""Security event logging for the auth audit trail.

Append-only log to the security_events table. Writes run in a worker thread
and never fail the operation being audited: the audit trail is secondary to
the account state change that already happened.
"""

import asyncio
import logging
from enum import Enum
from typing import Any

from psycopg2.extras import Json

from clients.postgres_client import PostgresClient
from utils.timezone import now_utc

logger = logging.getLogger(__name__)


class SecurityEvent(Enum):
    """Auth security event types."""

    USER_REGISTERED = "user_registered"
    EMAIL_VERIFIED = "email_verified"
    VERIFICATION_RESENT = "verification_resent"
    VERIFICATION_RATE_LIMITED = "verification_rate_limited"
    LOGIN_SUCCEEDED = "login_succeeded"
    LOGIN_FAILED = "login_failed"
    LOGIN_BLOCKED_LOCKED = "login_blocked_locked"
    ACCOUNT_LOCKED = "account_locked"
    SESSION_REFRESHED = "session_refreshed"
    SESSION_REVOKED = "session_revoked"
    ACCOUNT_DELETED = "account_deleted"


class SecurityLogger:
    """Append-only security event logger."""

    def __init__(self, postgres: PostgresClient):
        self._db = postgres

    def _insert(
        self,
        event: SecurityEvent,
        email: str | None,
        user_id: int | None,
        ip_address: str | None,
        user_agent: str | None,
        details: dict[str, Any] | None,
    ) -> None:
        self._db.execute(
            """INSERT INTO security_events
               (event_type, email, user_id, ip_address, user_agent, details, created_at)
               VALUES (%s, %s, %s, %s, %s, %s, %s)
               RETURNING id""",
            (
                event.value,
                email,
                user_id,
                ip_address,
                user_agent,
                Json(details) if details else None,
                now_utc(),
            ),
        )

    async def log(
        self,
        event: SecurityEvent,
        email: str | None = None,
        user_id: int | None = None,
        ip_address: str | None = None,
        user_agent: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Record a security event. Storage failures are logged, not raised.

        Takes its own pool connection, so never call it while holding an
        account transaction open.
        """
        try:
            async with self._db.slot():
                await asyncio.to_thread(
                    self._insert, event, email, user_id, ip_address, user_agent, details
                )
        except Exception:
            logger.exception(
                "Failed to record security event %s for user_id=%s", event.value, user_id
            )
