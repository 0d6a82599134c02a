"""Database access layer using psycopg2.

Provides:
- Database: pooled handle built once by the entry point and injected
- Database.txn(): context manager for one short, safe transaction
- fetchone/fetchall: Query helpers
"""

from __future__ import annotations

import threading
from contextlib import contextmanager
from typing import Any, Iterator, Sequence
from urllib.parse import urlparse

import psycopg2
from psycopg2.extensions import cursor as PgCursor
from psycopg2.pool import PoolError, ThreadedConnectionPool

from guestbridge.config import Settings
from guestbridge.domain.errors import FatalError

# Errors that mean the connection itself is gone, not that a statement failed.
_CONNECTION_ERRORS = (psycopg2.OperationalError, psycopg2.InterfaceError)


def _dsn_has_password(dsn: str) -> bool:
    if "://" in dsn:
        return bool(urlparse(dsn).password)
    return any(part.startswith("password=") for part in dsn.split())


def connect_kwargs(settings: Settings) -> dict[str, Any]:
    """Build psycopg2.connect() keyword arguments from settings.

    Raises:
        RuntimeError: If DATABASE_URL is not set.
    """
    dsn = settings.database_url
    if not dsn:
        raise RuntimeError("DATABASE_URL environment variable not set")
    kwargs: dict[str, Any] = {"dsn": dsn}
    if settings.db_password and not _dsn_has_password(dsn):
        kwargs["password"] = settings.db_password
    return kwargs


class Database:
    """Connection pool shared by every component of one process.

    Safe to use from concurrent request handlers; each txn() checks out
    its own connection. ThreadedConnectionPool fails at once when every
    connection is taken, so checkouts beyond db_pool_max wait on a
    semaphore for up to db_checkout_timeout seconds.
    """

    def __init__(self, settings: Settings) -> None:
        self._pool = ThreadedConnectionPool(
            settings.db_pool_min,
            settings.db_pool_max,
            **connect_kwargs(settings),
        )
        self._slots = threading.BoundedSemaphore(settings.db_pool_max)
        self._checkout_timeout = settings.db_checkout_timeout

    @contextmanager
    def txn(self) -> Iterator[PgCursor]:
        """Context manager for a short, safe transaction.

        Commits on successful exit, rolls back on exception. A lost
        connection is discarded from the pool and surfaces as FatalError.

        Yields:
            Cursor for executing queries within the transaction.

        Example:
            with db.txn() as cur:
                cur.execute("INSERT INTO t (x) VALUES (%s)", (1,))
        """
        if not self._slots.acquire(timeout=self._checkout_timeout):
            raise FatalError("canonical store unavailable: connection pool exhausted")
        try:
            conn = self._pool.getconn()
        except (*_CONNECTION_ERRORS, PoolError) as exc:
            self._slots.release()
            raise FatalError(f"canonical store unavailable: {exc}") from exc

        try:
            with conn.cursor() as cur:
                yield cur
            conn.commit()
        except Exception as exc:
            # OperationalError also covers lock timeouts; only a closed
            # connection is fatal.
            if conn.closed or isinstance(exc, psycopg2.InterfaceError):
                raise FatalError(f"canonical store connection lost: {exc}") from exc
            try:
                conn.rollback()
            except _CONNECTION_ERRORS as rollback_exc:
                raise FatalError(
                    f"canonical store connection lost: {rollback_exc}"
                ) from exc
            raise
        finally:
            try:
                self._pool.putconn(conn, close=bool(conn.closed))
            finally:
                self._slots.release()

    def close(self) -> None:
        """Close every pooled connection."""
        self._pool.closeall()


def fetchone(
    cur: PgCursor,
    query: str,
    params: Sequence[Any] | None = None,
) -> tuple[Any, ...] | None:
    """Execute query and fetch one row.

    Returns:
        Single row tuple or None if no results.
    """
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

