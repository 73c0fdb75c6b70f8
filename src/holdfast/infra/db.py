"""Database access layer using psycopg2.

Provides:
- get_conn(): connection from DATABASE_URL (DB_PASSWORD fallback)
- txn(): context manager for short, safe transactions
- fetchone/fetchall: query helpers
- lock_rows(): SELECT ... FOR UPDATE returning every row
- conditional_update(): UPDATE/DELETE returning the affected-row count
"""

from __future__ import annotations

import os
from contextlib import contextmanager
from typing import Any, Iterator, Sequence
from urllib.parse import urlparse

import psycopg2
from psycopg2.extensions import connection as PgConnection, cursor as PgCursor


def _dsn_has_password(dsn: str) -> bool:
    if "://" in dsn:
        return bool(urlparse(dsn).password)
    return any(part.startswith("password=") for part in dsn.split())


def get_conn() -> PgConnection:
    """Get a new database connection from DATABASE_URL.

    If the DSN carries no password and DB_PASSWORD is set (secret mounted
    separately from the URL), it is passed as a keyword.

    Raises:
        RuntimeError: If DATABASE_URL is not set.
        psycopg2.Error: On connection failure.
    """
    dsn = os.environ.get("DATABASE_URL")
    if not dsn:
        raise RuntimeError("DATABASE_URL environment variable not set")

    db_password = os.environ.get("DB_PASSWORD")
    if db_password and not _dsn_has_password(dsn):
        return psycopg2.connect(dsn, password=db_password)
    return psycopg2.connect(dsn)


@contextmanager
def txn(conn: PgConnection | None = None) -> Iterator[PgCursor]:
    """Context manager for a short, safe transaction.

    If conn is None, creates a new connection that is closed on exit.
    Commits on successful exit, rolls back on exception.

    Example:
        with txn() as cur:
            cur.execute("UPDATE bookings SET status = %s WHERE id = %s", (s, i))
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


def lock_rows(
    cur: PgCursor,
    query: str,
    params: Sequence[Any] | None = None,
    *,
    skip_locked: bool = False,
) -> list[tuple[Any, ...]]:
    """Execute SELECT ... FOR UPDATE and fetch all rows.

    Rows stay locked until the surrounding transaction ends. Put the ORDER BY
    in ``query`` so concurrent lockers acquire rows in the same order.
    """
    suffix = " FOR UPDATE"
    if skip_locked:
        suffix += " SKIP LOCKED"
    cur.execute(query.rstrip().rstrip(";") + suffix, params)
    return cur.fetchall()


def conditional_update(
    cur: PgCursor,
    query: str,
    params: Sequence[Any] | None = None,
) -> int:
    """Run a guarded UPDATE/DELETE and return how many rows it touched.

    The WHERE clause is the guard: a result of 0 means the row was not in the
    expected state (already processed or lost a race).
    """
    cur.execute(query, params)
    return cur.rowcount
