"""Availability repository - per-day inventory counters.

Uses raw SQL with psycopg2 (no ORM). ``remaining`` is only ever changed by
guarded UPDATEs; there is no read-modify-write path.
"""

from datetime import datetime

from psycopg2.extensions import cursor as PgCursor

from holdfast.infra.db import conditional_update, fetchall, fetchone, lock_rows

_COLUMNS = "id, property_id, date, price, remaining, is_blocked"


def _row_to_day(row: tuple) -> dict:
    return {
        "id": str(row[0]),
        "property_id": row[1],
        "date": row[2],
        "price": row[3],
        "remaining": row[4],
        "is_blocked": row[5],
    }


def lock_days(
    cur: PgCursor,
    *,
    property_id: str,
    start: datetime,
    end: datetime,
) -> list[dict]:
    """Lock every day of ``[start, end)`` for the property, date ascending."""
    rows = lock_rows(
        cur,
        f"""
        SELECT {_COLUMNS}
        FROM availability_days
        WHERE property_id = %s
          AND date >= %s
          AND date < %s
        ORDER BY date ASC
        """,
        (property_id, start, end),
    )
    return [_row_to_day(r) for r in rows]


def list_days(
    cur: PgCursor,
    *,
    property_id: str,
    start: datetime,
    end: datetime,
) -> list[dict]:
    rows = fetchall(
        cur,
        f"""
        SELECT {_COLUMNS}
        FROM availability_days
        WHERE property_id = %s
          AND date >= %s
          AND date < %s
        ORDER BY date ASC
        """,
        (property_id, start, end),
    )
    return [_row_to_day(r) for r in rows]


def decrement_remaining(cur: PgCursor, *, day_id: str) -> int:
    """Take one unit from a day if it is bookable.

    Returns:
        Affected rows: 1 on success, 0 if blocked or sold out.
    """
    return conditional_update(
        cur,
        """
        UPDATE availability_days
        SET remaining = remaining - 1, updated_at = now()
        WHERE id = %s
          AND is_blocked = false
          AND remaining > 0
        """,
        (day_id,),
    )


def release_nights(
    cur: PgCursor,
    *,
    property_id: str,
    start: datetime,
    end: datetime,
) -> int:
    """Give one unit back to every day of ``[start, end)``.

    Callers must already own the release (a guarded status transition that
    affected exactly one booking row), so the increment itself is unguarded.
    The rows are locked date ascending first, the same order holds take them
    in, so a release and a concurrent hold cannot deadlock.

    Returns:
        Number of days incremented.
    """
    lock_days(cur, property_id=property_id, start=start, end=end)
    return conditional_update(
        cur,
        """
        UPDATE availability_days
        SET remaining = remaining + 1, updated_at = now()
        WHERE property_id = %s
          AND date >= %s
          AND date < %s
        """,
        (property_id, start, end),
    )


def upsert_day(
    cur: PgCursor,
    *,
    property_id: str,
    day: datetime,
    price: int | None,
    remaining: int | None,
    is_blocked: bool | None,
) -> dict:
    """Insert a calendar day or update the fields the host sent.

    A None field keeps the stored value on update. On insert, ``remaining``
    defaults to 0 and ``is_blocked`` to false; ``price`` must be given.
    """
    row = fetchone(
        cur,
        f"""
        INSERT INTO availability_days (property_id, date, price, remaining, is_blocked)
        VALUES (%s, %s, %s, COALESCE(%s, 0), COALESCE(%s, false))
        ON CONFLICT (property_id, date) DO UPDATE
        SET price = COALESCE(%s, availability_days.price),
            remaining = COALESCE(%s, availability_days.remaining),
            is_blocked = COALESCE(%s, availability_days.is_blocked),
            updated_at = now()
        RETURNING {_COLUMNS}
        """,
        (property_id, day, price, remaining, is_blocked, price, remaining, is_blocked),
    )
    return _row_to_day(row)
