"""Database access layer using psycopg2.

Provides:
- connect_kwargs(): DSN + connection options (password fallback, timeout)
- get_conn(): Get a single database connection
- create_pool(): Bounded, thread-safe connection pool owned by the caller
- pooled_conn(): Borrow a connection from a pool
- txn(): Context manager for short, safe transactions
- fetchone/fetchall: Query helpers
"""

import os
import threading
from contextlib import contextmanager
from typing import Any, Iterator, Sequence
from urllib.parse import urlparse

import psycopg2
from psycopg2.extensions import connection as PgConnection, cursor as PgCursor
from psycopg2.pool import PoolError, ThreadedConnectionPool


def _dsn_has_password(dsn: str) -> bool:
    if "://" in dsn:
        return bool(urlparse(dsn).password)
    return any(part.startswith("password=") for part in dsn.split())


def connect_kwargs(
    dsn: str | None = None,
    *,
    statement_timeout_ms: int | None = None,
) -> tuple[str, dict[str, Any]]:
    """Resolve DSN and keyword arguments for psycopg2.connect.

    Args:
        dsn: Connection string. Falls back to DATABASE_URL.
        statement_timeout_ms: Server-side statement timeout, if any.

    Returns:
        Tuple of (dsn, kwargs).

    Raises:
        RuntimeError: If no DSN is available.
    """
    dsn = dsn or os.environ.get("DATABASE_URL")
    if not dsn:
        raise RuntimeError("DATABASE_URL environment variable not set")

    kwargs: dict[str, Any] = {}
    db_password = os.environ.get("DB_PASSWORD", "")
    if db_password and not _dsn_has_password(dsn):
        kwargs["password"] = db_password
    if statement_timeout_ms:
        kwargs["options"] = f"-c statement_timeout={int(statement_timeout_ms)}"
    return dsn, kwargs


def get_conn(dsn: str | None = None) -> PgConnection:
    """Get a new database connection.

    Raises:
        RuntimeError: If DATABASE_URL is not set and no dsn given.
        psycopg2.Error: On connection failure.
    """
    dsn, kwargs = connect_kwargs(dsn)
    return psycopg2.connect(dsn, **kwargs)


class BoundedConnectionPool:
    """ThreadedConnectionPool that waits for a free connection.

    psycopg2's pool raises PoolError as soon as maxconn connections are
    out. Borrowers here block on a semaphore sized to maxconn and only
    fail after `acquire_timeout` seconds.
    """

    def __init__(
        self,
        pool: ThreadedConnectionPool,
        maxconn: int,
        *,
        acquire_timeout: float = 30.0,
    ) -> None:
        self._pool = pool
        self._slots = threading.BoundedSemaphore(maxconn)
        self._acquire_timeout = acquire_timeout

    def getconn(self) -> PgConnection:
        """Borrow a connection, waiting for a free slot.

        Raises:
            PoolError: If no connection frees up within acquire_timeout.
        """
        if not self._slots.acquire(timeout=self._acquire_timeout):
            raise PoolError(
                f"timed out after {self._acquire_timeout}s waiting for a database connection"
            )
        try:
            return self._pool.getconn()
        except Exception:
            self._slots.release()
            raise

    def putconn(self, conn: PgConnection, close: bool = False) -> None:
        try:
            self._pool.putconn(conn, close=close)
        finally:
            self._slots.release()

    def closeall(self) -> None:
        self._pool.closeall()


def create_pool(
    dsn: str | None = None,
    *,
    minconn: int = 1,
    maxconn: int = 10,
    statement_timeout_ms: int | None = None,
    acquire_timeout: float = 30.0,
) -> BoundedConnectionPool:
    """Create a thread-safe pool. The caller owns it and must closeall()."""
    dsn, kwargs = connect_kwargs(dsn, statement_timeout_ms=statement_timeout_ms)
    return BoundedConnectionPool(
        ThreadedConnectionPool(minconn, maxconn, dsn, **kwargs),
        maxconn,
        acquire_timeout=acquire_timeout,
    )


@contextmanager
def pooled_conn(pool: BoundedConnectionPool) -> Iterator[PgConnection]:
    """Borrow a connection from the pool; broken connections are discarded."""
    conn = pool.getconn()
    try:
        yield conn
    finally:
        pool.putconn(conn, close=bool(conn.closed))


@contextmanager
def txn(conn: PgConnection | None = None) -> Iterator[PgCursor]:
    """Context manager for a short, safe transaction.

    If conn is None, creates a new connection that is closed on exit.
    Commits on successful exit, rolls back on exception.

    Example:
        with txn() as cur:
            cur.execute("INSERT INTO t (x) VALUES (%s)", (1,))
    """
    owns_conn = conn is None
    if owns_conn:
        conn = get_conn()

    try:
        with conn.cursor() as cur:
            yield cur
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        if owns_conn:
            conn.close()


def fetchone(
    cur: PgCursor,
    query: str,
    params: Sequence[Any] | None = None,
) -> tuple[Any, ...] | None:
    """Execute query and fetch one row (None if no results)."""
    cur.execute(query, params)
    return cur.fetchone()


def fetchall(
    cur: PgCursor,
    query: str,
    params: Sequence[Any] | None = None,
) -> list[tuple[Any, ...]]:
    """Execute query and fetch all rows."""
    cur.execute(query, params)
    return cur.fetchall()
