"""Argon2id password hashing, run off the event loop."""

import logging
import secrets

from argon2 import PasswordHasher as Argon2Hasher
from argon2 import Type
from argon2.exceptions import HashingError, InvalidHashError, VerificationError, VerifyMismatchError

from auth.config import AuthConfig
from auth.exceptions import InternalAuthError
from auth.worker_pool import WorkerPool

logger = logging.getLogger(__name__)


class PasswordHasher:
    """One-way salted password hashing.

    Both operations execute on the shared WorkerPool; callers await them.
    """

    def __init__(self, pool: WorkerPool, config: AuthConfig):
        self._pool = pool
        self._argon = Argon2Hasher(
            time_cost=config.argon2_time_cost,
            memory_cost=config.argon2_memory_cost_kib,
            parallelism=config.argon2_parallelism,
            type=Type.ID,
        )
        # Stands in for a stored hash when the account does not exist
        self._dummy_hash = self._argon.hash(secrets.token_urlsafe(16))

    def _hash_sync(self, plaintext: str) -> str:
        try:
            return self._argon.hash(plaintext)
        except HashingError as e:
            raise InternalAuthError("Password hashing failed") from e

    def _verify_sync(self, plaintext: str, hashed: str | None) -> bool:
        if not hashed:
            return False
        try:
            return self._argon.verify(hashed, plaintext)
        except VerifyMismatchError:
            return False
        except (InvalidHashError, VerificationError):
            logger.warning("Stored password hash could not be verified")
            return False

    async def hash(self, plaintext: str) -> str:
        """Hash a password. Returns an Argon2 PHC string."""
        return await self._pool.run(self._hash_sync, plaintext)

    async def verify(self, plaintext: str, hashed: str | None) -> bool:
        """Check a password against a stored hash.

        Returns False on mismatch and on missing or malformed hashes.
        """
        return await self._pool.run(self._verify_sync, plaintext, hashed)

    async def verify_dummy(self, plaintext: str) -> None:
        """Spend one verification on a throwaway hash and discard the result."""
        await self._pool.run(self._verify_sync, plaintext, self._dummy_hash)

    def needs_rehash(self, hashed: str) -> bool:
        """Whether the hash was made with different cost parameters."""
        try:
            return self._argon.check_needs_rehash(hashed)
        except InvalidHashError:
            return True
