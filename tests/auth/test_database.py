"""Tests for AccountDatabase SQL plumbing over mocked connections."""

import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import psycopg2.extensions
import psycopg2.pool
import pytest

from auth.database import ACCOUNT_COLUMNS, AccountDatabase
from auth.exceptions import InternalAuthError
from auth.types import AccountStatus, UserAccount
from clients.postgres_client import PostgresClient
from utils.timezone import now_utc

DATABASE_URL = "postgresql://test/accounts-limit"


def _account(**overrides) -> UserAccount:
    now = now_utc()
    values = dict(
        id=5,
        email="jane@example.com",
        username="jane",
        first_name="Jane",
        created_at=now,
        updated_at=now,
    )
    values.update(overrides)
    return UserAccount(**values)


@pytest.fixture
def tx():
    handle = MagicMock()
    handle.fetch_one = AsyncMock(return_value=None)
    handle.fetch_all = AsyncMock(return_value=[])
    return handle


@pytest.fixture
def postgres():
    client = MagicMock()
    client.acquire.return_value = MagicMock()
    return client


@pytest.fixture
def db(postgres):
    return AccountDatabase(postgres)


class TestQueries:
    """Row mapping and lookups."""

    @pytest.mark.asyncio
    async def test_find_by_email_maps_row(self, db, tx):
        tx.fetch_one.return_value = _account().model_dump()

        account = await db.find_by_email(tx, "Jane@Example.com")

        assert account.id == 5
        assert account.status is AccountStatus.PENDING
        query, params = tx.fetch_one.await_args.args
        assert "lower(email) = lower(%s)" in query
        assert "is_deleted = false" in query
        assert params == ("Jane@Example.com",)

    @pytest.mark.asyncio
    async def test_find_by_id_missing(self, db, tx):
        assert await db.find_by_id(tx, 99) is None

    @pytest.mark.asyncio
    async def test_exists_checks(self, db, tx):
        assert await db.email_exists(tx, "a@example.com") is False

        tx.fetch_one.return_value = {"found": 1}
        assert await db.phone_exists(tx, "+15551234567") is True

    @pytest.mark.asyncio
    async def test_insert_omits_id(self, db, tx):
        tx.fetch_one.return_value = _account(id=11).model_dump()

        stored = await db.insert(tx, _account(id=0))

        assert stored.id == 11
        query, params = tx.fetch_one.await_args.args
        assert len(params) == len(ACCOUNT_COLUMNS) - 1
        assert "INSERT INTO users (email," in query

    @pytest.mark.asyncio
    async def test_update_missing_row(self, db, tx):
        with pytest.raises(LookupError):
            await db.update(tx, _account())

    @pytest.mark.asyncio
    async def test_update_binds_id_last(self, db, tx):
        tx.fetch_one.return_value = _account(first_name="Janet").model_dump()

        updated = await db.update(tx, _account(first_name="Janet"))

        assert updated.first_name == "Janet"
        assert tx.fetch_one.await_args.args[1][-1] == 5

    @pytest.mark.asyncio
    async def test_soft_delete(self, db, tx):
        assert await db.soft_delete(tx, 5) is False

        tx.fetch_all.return_value = [{"id": 5}]
        assert await db.soft_delete(tx, 5) is True


class TestTransaction:
    """Connection lifecycle around a unit of work."""

    @pytest.mark.asyncio
    async def test_commit_and_release(self, db, postgres):
        conn = postgres.acquire.return_value

        async with db.transaction():
            pass

        conn.commit.assert_called_once()
        conn.rollback.assert_not_called()
        postgres.release.assert_called_once_with(conn)

    @pytest.mark.asyncio
    async def test_rollback_on_error(self, db, postgres):
        conn = postgres.acquire.return_value

        with pytest.raises(ValueError):
            async with db.transaction():
                raise ValueError("boom")

        conn.commit.assert_not_called()
        conn.rollback.assert_called_once()
        postgres.release.assert_called_once_with(conn)


class _FixedPool:
    """Stands in for ThreadedConnectionPool: raises once every connection is out."""

    def __init__(self, size: int):
        self.idle = [_connection() for _ in range(size)]
        self.most_in_use = 0
        self._size = size

    def getconn(self):
        if not self.idle:
            raise psycopg2.pool.PoolError("connection pool exhausted")
        conn = self.idle.pop()
        self.most_in_use = max(self.most_in_use, self._size - len(self.idle))
        return conn

    def putconn(self, conn):
        self.idle.append(conn)


def _connection():
    conn = MagicMock()
    conn.closed = False
    conn.get_transaction_status.return_value = psycopg2.extensions.TRANSACTION_STATUS_IDLE
    return conn


@pytest.fixture
def pooled_db():
    """AccountDatabase over a real PostgresClient holding a two-connection pool."""
    with patch.object(PostgresClient, "_ensure_connection_pool"):
        client = PostgresClient(DATABASE_URL, max_connections=2)
    pool = _FixedPool(2)
    PostgresClient._connection_pools[DATABASE_URL] = pool
    yield AccountDatabase(client), pool
    PostgresClient._connection_pools.pop(DATABASE_URL, None)


class TestConnectionLimit:
    """More concurrent units of work than pooled connections."""

    @pytest.mark.asyncio
    async def test_extra_transactions_wait_for_a_connection(self, pooled_db):
        db, pool = pooled_db

        async def unit_of_work():
            async with db.transaction():
                await asyncio.sleep(0.05)
            return "ok"

        results = await asyncio.gather(*(unit_of_work() for _ in range(5)))

        assert results == ["ok"] * 5
        assert pool.most_in_use == 2
        assert len(pool.idle) == 2

    @pytest.mark.asyncio
    async def test_pool_error_is_internal_error(self):
        with patch.object(PostgresClient, "_ensure_connection_pool"):
            client = PostgresClient(DATABASE_URL, max_connections=1)
        PostgresClient._connection_pools[DATABASE_URL] = _FixedPool(0)
        try:
            with pytest.raises(InternalAuthError, match="pool exhausted"):
                async with AccountDatabase(client).transaction():
                    pass
        finally:
            PostgresClient._connection_pools.pop(DATABASE_URL, None)
