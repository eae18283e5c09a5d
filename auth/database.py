"""Account persistence on PostgreSQL.

Implements the UserRepository protocol over the users table. psycopg2 is
blocking, so every statement runs in a worker thread while the transaction's
connection stays checked out for the whole unit of work.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict

import psycopg2.errors
import psycopg2.pool

from auth.exceptions import ConflictError, InternalAuthError
from auth.types import UserAccount
from clients.postgres_client import ConnectionTransaction, PostgresClient, Params
from utils.timezone import now_utc

logger = logging.getLogger(__name__)

ACCOUNT_COLUMNS = (
    "id",
    "email",
    "username",
    "first_name",
    "last_name",
    "phone_number",
    "birth_of_date",
    "avatar",
    "password_hash",
    "status",
    "role",
    "failed_login_attempts",
    "last_failed_login_at",
    "account_locked_until",
    "last_login_at",
    "verification_token",
    "verification_token_expiry",
    "email_verified_at",
    "verification_resend_count",
    "last_verification_resend_at",
    "is_deleted",
    "deleted_at",
    "created_at",
    "updated_at",
)

_SELECT_COLUMNS = ", ".join(ACCOUNT_COLUMNS)
_WRITABLE_COLUMNS = tuple(c for c in ACCOUNT_COLUMNS if c != "id")


class PostgresTransaction:
    """Async handle over a ConnectionTransaction."""

    def __init__(self, tx: ConnectionTransaction):
        self._tx = tx

    async def fetch_one(self, query: str, params: Params = None) -> Dict[str, Any] | None:
        return await asyncio.to_thread(self._tx.fetch_one, query, params)

    async def fetch_all(self, query: str, params: Params = None) -> list[Dict[str, Any]]:
        return await asyncio.to_thread(self._tx.fetch_all, query, params)

    async def commit(self) -> None:
        await asyncio.to_thread(self._tx.commit)

    async def rollback(self) -> None:
        await asyncio.to_thread(self._tx.rollback)


def _row_to_account(row: Dict[str, Any] | None) -> UserAccount | None:
    if row is None:
        return None
    return UserAccount.model_validate(row)


def _account_values(account: UserAccount) -> tuple:
    data = account.model_dump()
    return tuple(data[c] for c in _WRITABLE_COLUMNS)


class AccountDatabase:
    """PostgreSQL-backed user repository."""

    def __init__(self, postgres: PostgresClient):
        self._db = postgres

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[PostgresTransaction]:
        """One unit of work. Commits on clean exit, rolls back on exception.

        Waits for a free pool connection when all of them are checked out.

        Raises:
            InternalAuthError: The pool handed out no connection.
        """
        async with self._db.slot():
            try:
                conn = await asyncio.to_thread(self._db.acquire)
            except psycopg2.pool.PoolError as e:
                logger.error("No database connection available: %s", e)
                raise InternalAuthError("Database connection pool exhausted") from e

            tx = PostgresTransaction(ConnectionTransaction(conn))
            try:
                yield tx
                await tx.commit()
            except BaseException:
                await tx.rollback()
                raise
            finally:
                await asyncio.to_thread(self._db.release, conn)

    async def find_by_email(self, tx: PostgresTransaction, email: str) -> UserAccount | None:
        """Find a non-deleted account by email (case-insensitive)."""
        row = await tx.fetch_one(
            f"""SELECT {_SELECT_COLUMNS} FROM users
                WHERE lower(email) = lower(%s) AND is_deleted = false""",
            (email,),
        )
        return _row_to_account(row)

    async def find_by_id(self, tx: PostgresTransaction, user_id: int) -> UserAccount | None:
        """Find a non-deleted account by id."""
        row = await tx.fetch_one(
            f"""SELECT {_SELECT_COLUMNS} FROM users
                WHERE id = %s AND is_deleted = false""",
            (user_id,),
        )
        return _row_to_account(row)

    async def find_by_verification_token(
        self, tx: PostgresTransaction, token: str
    ) -> UserAccount | None:
        """Find the account holding a verification token."""
        row = await tx.fetch_one(
            f"""SELECT {_SELECT_COLUMNS} FROM users
                WHERE verification_token = %s AND is_deleted = false""",
            (token,),
        )
        return _row_to_account(row)

    async def email_exists(self, tx: PostgresTransaction, email: str) -> bool:
        row = await tx.fetch_one(
            """SELECT 1 AS found FROM users
               WHERE lower(email) = lower(%s) AND is_deleted = false""",
            (email,),
        )
        return row is not None

    async def username_exists(self, tx: PostgresTransaction, username: str) -> bool:
        row = await tx.fetch_one(
            "SELECT 1 AS found FROM users WHERE username = %s AND is_deleted = false",
            (username,),
        )
        return row is not None

    async def phone_exists(self, tx: PostgresTransaction, phone: str) -> bool:
        row = await tx.fetch_one(
            "SELECT 1 AS found FROM users WHERE phone_number = %s AND is_deleted = false",
            (phone,),
        )
        return row is not None

    async def insert(self, tx: PostgresTransaction, account: UserAccount) -> UserAccount:
        """Insert a new account. The database assigns the id."""
        placeholders = ", ".join(["%s"] * len(_WRITABLE_COLUMNS))
        try:
            row = await tx.fetch_one(
                f"""INSERT INTO users ({", ".join(_WRITABLE_COLUMNS)})
                    VALUES ({placeholders})
                    RETURNING {_SELECT_COLUMNS}""",
                _account_values(account),
            )
        except psycopg2.errors.UniqueViolation as e:
            # Lost a race with a concurrent registration
            constraint = e.diag.constraint_name or ""
            logger.info("Account insert rejected by unique constraint %s", constraint)
            field = next(
                (f for f in ("phone_number", "username", "email") if f in constraint),
                "email",
            )
            raise ConflictError(field, f"{field.replace('_', ' ').capitalize()} already exists") from e
        return _row_to_account(row)

    async def update(self, tx: PostgresTransaction, account: UserAccount) -> UserAccount:
        """Write every mutable column of account back to its row."""
        assignments = ", ".join(f"{c} = %s" for c in _WRITABLE_COLUMNS)
        row = await tx.fetch_one(
            f"""UPDATE users SET {assignments}
                WHERE id = %s
                RETURNING {_SELECT_COLUMNS}""",
            _account_values(account) + (account.id,),
        )
        if row is None:
            raise LookupError(f"User with id {account.id} not found")
        return _row_to_account(row)

    async def soft_delete(self, tx: PostgresTransaction, user_id: int) -> bool:
        """Mark the account deleted. Returns False if it was not found."""
        now = now_utc()
        rows = await tx.fetch_all(
            """UPDATE users SET is_deleted = true, deleted_at = %s, updated_at = %s
               WHERE id = %s AND is_deleted = false
               RETURNING id""",
            (now, now, user_id),
        )
        return len(rows) > 0
