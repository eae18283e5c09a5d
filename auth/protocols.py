"""Capabilities the account services depend on.

Services receive implementations of these at construction time and never
import a concrete storage or transport module themselves.
"""

from contextlib import AbstractAsyncContextManager
from typing import Any, Protocol

from auth.types import UserAccount


class Cache(Protocol):
    """String-keyed store with per-key TTL. ValkeyClient implements it."""

    async def get(self, key: str) -> str | None: ...

    async def set(self, key: str, value: str, expire_seconds: int | None = None) -> None: ...

    async def delete(self, key: str) -> bool: ...


class EventPublisher(Protocol):
    """Publishes a JSON payload to a topic, keyed for partitioning."""

    async def publish(
        self, topic: str, key: str, payload: dict[str, Any], timeout: float
    ) -> None: ...


class Transaction(Protocol):
    """Handle for one repository unit of work."""

    async def commit(self) -> None: ...

    async def rollback(self) -> None: ...


class UserRepository(Protocol):
    """Account persistence. Every call runs inside a caller-supplied transaction."""

    def transaction(self) -> AbstractAsyncContextManager[Transaction]: ...

    async def find_by_email(self, tx: Transaction, email: str) -> UserAccount | None: ...

    async def find_by_id(self, tx: Transaction, user_id: int) -> UserAccount | None: ...

    async def find_by_verification_token(
        self, tx: Transaction, token: str
    ) -> UserAccount | None: ...

    async def email_exists(self, tx: Transaction, email: str) -> bool: ...

    async def username_exists(self, tx: Transaction, username: str) -> bool: ...

    async def phone_exists(self, tx: Transaction, phone: str) -> bool: ...

    async def insert(self, tx: Transaction, account: UserAccount) -> UserAccount: ...

    async def update(self, tx: Transaction, account: UserAccount) -> UserAccount: ...

    async def soft_delete(self, tx: Transaction, user_id: int) -> bool: ...
