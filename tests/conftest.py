"""Shared test fixtures for the account service test suite.

Everything runs against in-memory stand-ins for Postgres, Valkey and Kafka, so
the suite needs no live infrastructure. The stand-ins honour the same
contracts as the real clients (commit/rollback, delete-returns-existed).
"""

from unittest.mock import Mock

import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

from auth.config import AuthConfig, SigningKeys
from auth.passwords import PasswordHasher
from auth.profile_cache import ProfileCache
from auth.profile_service import ProfileService
from auth.security_logger import SecurityLogger
from auth.service import AccountService
from auth.session import SessionManager
from auth.tokens import TokenIssuer
from auth.types import UserAccount
from auth.verification import ConsumedTokenStore
from auth.worker_pool import WorkerPool
from core.event_bus import EventDispatcher
from utils.user_context import clear_current_user_id


# =============================================================================
# TEST CONSTANTS
# =============================================================================

VALID_PASSWORD = "Sup3r$ecret"
TEST_EMAIL = "jane.doe@example.com"
TEST_FULL_NAME = "Jane Q Doe"


# =============================================================================
# IN-MEMORY INFRASTRUCTURE
# =============================================================================


class InMemoryTransaction:
    """Transaction handle over InMemoryUserRepository."""

    def __init__(self, repo: "InMemoryUserRepository"):
        self._repo = repo

    async def commit(self) -> None:
        self._repo._checkpoint()

    async def rollback(self) -> None:
        self._repo._restore()


class InMemoryUserRepository:
    """UserRepository over a dict, with snapshot-based commit/rollback."""

    def __init__(self):
        self._rows: dict[int, UserAccount] = {}
        self._committed: dict[int, UserAccount] = {}
        self._next_id = 1
        self.commits = 0
        self.rollbacks = 0
        self.open_transactions = 0

    def _copy(self, rows: dict[int, UserAccount]) -> dict[int, UserAccount]:
        return {k: v.model_copy(deep=True) for k, v in rows.items()}

    def _checkpoint(self) -> None:
        self._committed = self._copy(self._rows)
        self.commits += 1

    def _restore(self) -> None:
        self._rows = self._copy(self._committed)
        self.rollbacks += 1

    def transaction(self):
        repo = self

        class _Unit:
            async def __aenter__(self):
                repo.open_transactions += 1
                return InMemoryTransaction(repo)

            async def __aexit__(self, exc_type, exc, tb):
                repo.open_transactions -= 1
                if exc_type is None:
                    repo._checkpoint()
                else:
                    repo._restore()
                return False

        return _Unit()

    # Test helpers (synchronous, committed state)

    def get(self, user_id: int) -> UserAccount:
        return self._committed[user_id].model_copy(deep=True)

    def put(self, account: UserAccount) -> None:
        """Overwrite a committed row directly."""
        self._rows[account.id] = account.model_copy(deep=True)
        self._committed[account.id] = account.model_copy(deep=True)

    # UserRepository

    def _live(self):
        return (a for a in self._rows.values() if not a.is_deleted)

    async def find_by_email(self, tx, email: str) -> UserAccount | None:
        for account in self._live():
            if account.email.lower() == email.lower():
                return account.model_copy(deep=True)
        return None

    async def find_by_id(self, tx, user_id: int) -> UserAccount | None:
        account = self._rows.get(user_id)
        if account is None or account.is_deleted:
            return None
        return account.model_copy(deep=True)

    async def find_by_verification_token(self, tx, token: str) -> UserAccount | None:
        for account in self._live():
            if account.verification_token == token:
                return account.model_copy(deep=True)
        return None

    async def email_exists(self, tx, email: str) -> bool:
        return await self.find_by_email(tx, email) is not None

    async def username_exists(self, tx, username: str) -> bool:
        return any(a.username == username for a in self._live())

    async def phone_exists(self, tx, phone: str) -> bool:
        return any(a.phone_number == phone for a in self._live())

    async def insert(self, tx, account: UserAccount) -> UserAccount:
        stored = account.model_copy(update={"id": self._next_id}, deep=True)
        self._next_id += 1
        self._rows[stored.id] = stored
        return stored.model_copy(deep=True)

    async def update(self, tx, account: UserAccount) -> UserAccount:
        if account.id not in self._rows:
            raise LookupError(f"User with id {account.id} not found")
        self._rows[account.id] = account.model_copy(deep=True)
        return account.model_copy(deep=True)

    async def soft_delete(self, tx, user_id: int) -> bool:
        account = self._rows.get(user_id)
        if account is None or account.is_deleted:
            return False
        account.is_deleted = True
        return True


class InMemoryCache:
    """Cache protocol over a dict. Set `fail` to simulate an outage."""

    def __init__(self):
        self.data: dict[str, str] = {}
        self.ttls: dict[str, int | None] = {}
        self.fail = False

    def _check(self) -> None:
        if self.fail:
            raise ConnectionError("cache unavailable")

    async def get(self, key: str) -> str | None:
        self._check()
        return self.data.get(key)

    async def set(self, key: str, value: str, expire_seconds: int | None = None) -> None:
        self._check()
        self.data[key] = value
        self.ttls[key] = expire_seconds

    async def delete(self, key: str) -> bool:
        self._check()
        self.ttls.pop(key, None)
        return self.data.pop(key, None) is not None


class RecordingPublisher:
    """EventPublisher that keeps what it was asked to send."""

    def __init__(self):
        self.published: list[tuple[str, str, dict]] = []
        self.fail = False

    async def publish(self, topic: str, key: str, payload: dict, timeout: float) -> None:
        if self.fail:
            raise ConnectionError("broker unavailable")
        self.published.append((topic, key, payload))

    def topics(self) -> list[str]:
        return [topic for topic, _, _ in self.published]


# =============================================================================
# CONTEXT FIXTURES
# =============================================================================


@pytest.fixture(autouse=True)
def reset_user_context():
    """Ensure clean user context before and after each test."""
    clear_current_user_id()
    yield
    clear_current_user_id()


# =============================================================================
# CONFIG & KEYS
# =============================================================================


@pytest.fixture
def config() -> AuthConfig:
    """Auth config with cheap Argon2 parameters for fast tests."""
    return AuthConfig(
        argon2_time_cost=1,
        argon2_memory_cost_kib=8,
        argon2_parallelism=1,
        worker_pool_size=2,
    )


def _rsa_pair() -> tuple[str, str]:
    key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    private_pem = key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    ).decode()
    public_pem = key.public_key().public_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    ).decode()
    return private_pem, public_pem


@pytest.fixture(scope="session")
def signing_keys() -> SigningKeys:
    """Distinct RSA key pairs for access and refresh tokens."""
    access_private, access_public = _rsa_pair()
    refresh_private, refresh_public = _rsa_pair()
    return SigningKeys(
        access_signing_key=access_private,
        access_verification_key=access_public,
        refresh_signing_key=refresh_private,
        refresh_verification_key=refresh_public,
    )


# =============================================================================
# INFRASTRUCTURE FIXTURES
# =============================================================================


@pytest.fixture
def repository() -> InMemoryUserRepository:
    return InMemoryUserRepository()


@pytest.fixture
def cache() -> InMemoryCache:
    return InMemoryCache()


@pytest.fixture
def publisher() -> RecordingPublisher:
    return RecordingPublisher()


@pytest.fixture
def pool(config):
    pool = WorkerPool(config.worker_pool_size, config.crypto_timeout_seconds)
    yield pool
    pool.shutdown()


@pytest.fixture
def security_logger():
    """Audit trail mock; log() is an AsyncMock via the spec."""
    return Mock(spec=SecurityLogger)


# =============================================================================
# SERVICE FIXTURES
# =============================================================================


@pytest.fixture
def hasher(pool, config) -> PasswordHasher:
    return PasswordHasher(pool, config)


@pytest.fixture
def token_issuer(signing_keys, config, pool) -> TokenIssuer:
    return TokenIssuer(signing_keys, config, pool)


@pytest.fixture
def session_manager(cache, config) -> SessionManager:
    return SessionManager(cache, config)


@pytest.fixture
def profile_cache(cache, config) -> ProfileCache:
    return ProfileCache(cache, config)


@pytest.fixture
def consumed_tokens(cache, config) -> ConsumedTokenStore:
    return ConsumedTokenStore(cache, config)


@pytest.fixture
def dispatcher(publisher, config) -> EventDispatcher:
    return EventDispatcher(publisher, config)


@pytest.fixture
def account_service(
    config,
    repository,
    hasher,
    token_issuer,
    session_manager,
    profile_cache,
    consumed_tokens,
    dispatcher,
    security_logger,
) -> AccountService:
    """Real AccountService over in-memory infrastructure."""
    return AccountService(
        config=config,
        repository=repository,
        hasher=hasher,
        token_issuer=token_issuer,
        session_manager=session_manager,
        profile_cache=profile_cache,
        consumed_tokens=consumed_tokens,
        dispatcher=dispatcher,
        security_logger=security_logger,
    )


@pytest.fixture
def profile_service(config, repository, profile_cache, security_logger) -> ProfileService:
    return ProfileService(config, repository, profile_cache, security_logger)


@pytest.fixture
def registered_user(account_service, repository):
    """
    Factory: register (and by default verify) an account.

    Returns the committed UserAccount.
    """

    async def _register(
        email: str = TEST_EMAIL,
        password: str = VALID_PASSWORD,
        full_name: str = TEST_FULL_NAME,
        verify: bool = True,
    ) -> UserAccount:
        result = await account_service.register(email, password, full_name)
        user_id = int(result.user_id)
        if verify:
            await account_service.verify_email(repository.get(user_id).verification_token)
        return repository.get(user_id)

    return _register
