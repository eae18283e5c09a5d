"""
PostgreSQL client with connection pooling and explicit transactions.

Uses psycopg2 with ThreadedConnectionPool. Two ways to run SQL:

- execute(): one statement on its own connection, committed immediately
  (security audit rows).
- transaction(): one connection held for a unit of work, committed when the
  block exits cleanly and rolled back on any exception.
"""

import asyncio
import logging
import threading
from contextlib import asynccontextmanager, contextmanager
from enum import Enum
from typing import Any, AsyncIterator, Dict, Iterator, List, Tuple

import psycopg2
import psycopg2.extensions
import psycopg2.extras
import psycopg2.pool

logger = logging.getLogger(__name__)

# Global JSONB registration flag
_jsonb_registered = False

Params = Tuple | Dict | None


def _convert_params(params: Params) -> Params:
    """Convert Enum members to their stored values."""
    if params is None:
        return None

    def convert(value: Any) -> Any:
        if isinstance(value, Enum):
            return value.value
        if isinstance(value, list):
            return [convert(v) for v in value]
        if isinstance(value, tuple):
            return tuple(convert(v) for v in value)
        if isinstance(value, dict):
            return {k: convert(v) for k, v in value.items()}
        return value

    return convert(params)


class ConnectionTransaction:
    """
    One unit of work on a pooled connection.

    Nothing is visible to other connections until commit(). Statements after
    a commit start a new transaction on the same connection.
    """

    def __init__(self, conn):
        self._conn = conn

    def fetch_all(self, query: str, params: Params = None) -> List[Dict[str, Any]]:
        """Execute query, return list of row dicts. Empty list if no results."""
        with self._conn.cursor(cursor_factory=psycopg2.extras.RealDictCursor) as cur:
            cur.execute(query, _convert_params(params))
            if cur.description:
                return [dict(row) for row in cur.fetchall()]
            return []

    def fetch_one(self, query: str, params: Params = None) -> Dict[str, Any] | None:
        """Execute query, return first row or None."""
        rows = self.fetch_all(query, params)
        return rows[0] if rows else None

    def commit(self) -> None:
        self._conn.commit()

    def rollback(self) -> None:
        self._conn.rollback()


class PostgresClient:
    """
    PostgreSQL client shared by the account repository and the audit log.

    Usage:
        db = PostgresClient(database_url)

        with db.transaction() as tx:
            row = tx.fetch_one("SELECT * FROM users WHERE id = %s", (42,))
            tx.fetch_one("UPDATE users SET ... WHERE id = %s RETURNING id", (...))

    ThreadedConnectionPool.getconn raises PoolError instead of waiting when
    every connection is out. Async callers hold slot() around acquire() and
    release() so they queue for a connection instead.
    """

    # Class-level connection pools shared across instances
    _connection_pools: Dict[str, psycopg2.pool.ThreadedConnectionPool] = {}
    _pools_lock = threading.RLock()

    def __init__(self, database_url: str, min_connections: int = 2, max_connections: int = 20):
        self._database_url = database_url
        self._min_connections = min_connections
        self._max_connections = max_connections
        self._slots = asyncio.Semaphore(max_connections)
        self._ensure_connection_pool()

    def _ensure_connection_pool(self) -> None:
        """Create connection pool if it doesn't exist."""
        with self._pools_lock:
            if self._database_url not in self._connection_pools:
                pool = psycopg2.pool.ThreadedConnectionPool(
                    minconn=self._min_connections,
                    maxconn=self._max_connections,
                    dsn=self._database_url,
                    connect_timeout=30,
                )

                global _jsonb_registered
                if not _jsonb_registered:
                    psycopg2.extras.register_default_jsonb(globally=True)
                    _jsonb_registered = True

                self._connection_pools[self._database_url] = pool
                logger.info("Connection pool created")

    @asynccontextmanager
    async def slot(self) -> AsyncIterator[None]:
        """Wait until one of the pool's connections is free to take."""
        async with self._slots:
            yield

    def acquire(self):
        """Take a connection from the pool. Pair with release()."""
        if self._database_url not in self._connection_pools:
            self._ensure_connection_pool()

        conn = self._connection_pools[self._database_url].getconn()
        if conn is None:
            raise RuntimeError("Could not get connection from pool")
        return conn

    def release(self, conn) -> None:
        """Return a connection to the pool, discarding any open transaction."""
        pool = self._connection_pools.get(self._database_url)
        if pool is None:
            conn.close()
            return
        if not conn.closed and conn.get_transaction_status() != psycopg2.extensions.TRANSACTION_STATUS_IDLE:
            conn.rollback()
        pool.putconn(conn)

    @contextmanager
    def get_connection(self):
        """Borrow a connection for the duration of the block."""
        conn = self.acquire()
        try:
            yield conn
        finally:
            self.release(conn)

    @contextmanager
    def transaction(self) -> Iterator[ConnectionTransaction]:
        """Commit on clean exit, roll back on exception."""
        with self.get_connection() as conn:
            tx = ConnectionTransaction(conn)
            try:
                yield tx
                tx.commit()
            except Exception:
                tx.rollback()
                raise

    def execute(self, query: str, params: Params = None) -> List[Dict[str, Any]]:
        """Run one statement in its own transaction. Returns row dicts, empty if none."""
        with self.transaction() as tx:
            return tx.fetch_all(query, params)

    def close(self) -> None:
        """Close connection pool."""
        with self._pools_lock:
            if self._database_url in self._connection_pools:
                self._connection_pools[self._database_url].closeall()
                del self._connection_pools[self._database_url]

