"""Access and refresh token issuance (JWT).

Both token kinds carry the same claims ({iat, exp, user_id, sid}) but are
signed with different key material and lifetimes. The session id lets a
session be revoked in the session store independently of token expiry.
"""

import logging
import time

import jwt

from auth.config import AuthConfig, SigningKeys
from auth.exceptions import InternalAuthError, InvalidTokenError, TokenExpiredError
from auth.types import TokenClaims
from auth.worker_pool import WorkerPool

logger = logging.getLogger(__name__)

REQUIRED_CLAIMS = ["iat", "exp", "user_id", "sid"]


class TokenIssuer:
    """Signs and verifies access/refresh tokens."""

    def __init__(self, keys: SigningKeys, config: AuthConfig, pool: WorkerPool):
        self._keys = keys
        self._config = config
        self._pool = pool
        self._algorithm = config.token_algorithm

    @property
    def access_ttl_seconds(self) -> int:
        return self._config.access_token_ttl_seconds

    @property
    def refresh_ttl_seconds(self) -> int:
        return self._config.refresh_token_ttl_seconds

    @staticmethod
    def build_claims(user_id: int, session_id: str, ttl_seconds: int) -> TokenClaims:
        now = int(time.time())
        return TokenClaims(iat=now, exp=now + ttl_seconds, user_id=user_id, sid=session_id)

    def encode(self, claims: TokenClaims, key: str) -> str:
        """Sign claims with key. Signing problems are internal errors."""
        try:
            return jwt.encode(claims.model_dump(), key, algorithm=self._algorithm)
        except (jwt.PyJWTError, ValueError, TypeError) as e:
            logger.error("Token signing failed: %s", e)
            raise InternalAuthError("Token signing failed") from e

    def decode(self, token: str, key: str) -> TokenClaims:
        """Verify signature and expiry, return claims.

        Raises:
            TokenExpiredError: Signature valid but token expired.
            InvalidTokenError: Malformed, wrong key, or missing claims.
        """
        try:
            payload = jwt.decode(
                token,
                key,
                algorithms=[self._algorithm],
                options={"require": REQUIRED_CLAIMS},
            )
        except jwt.ExpiredSignatureError as e:
            raise TokenExpiredError("Token has expired") from e
        except jwt.InvalidTokenError as e:
            raise InvalidTokenError("Invalid token") from e

        try:
            return TokenClaims.model_validate(payload)
        except ValueError as e:
            raise InvalidTokenError("Invalid token claims") from e

    def _issue_pair_sync(self, user_id: int, session_id: str) -> tuple[str, str]:
        access = self.encode(
            self.build_claims(user_id, session_id, self.access_ttl_seconds),
            self._keys.access_signing_key,
        )
        refresh = self.encode(
            self.build_claims(user_id, session_id, self.refresh_ttl_seconds),
            self._keys.refresh_signing_key,
        )
        return access, refresh

    async def issue_pair(self, user_id: int, session_id: str) -> tuple[str, str]:
        """Issue (access_token, refresh_token) for a session."""
        return await self._pool.run(self._issue_pair_sync, user_id, session_id)

    async def verify_access(self, token: str) -> TokenClaims:
        return await self._pool.run(self.decode, token, self._keys.access_verification_key)

    async def verify_refresh(self, token: str) -> TokenClaims:
        return await self._pool.run(self.decode, token, self._keys.refresh_verification_key)
