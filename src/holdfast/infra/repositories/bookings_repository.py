"""Bookings repository - persistence and guarded status transitions.

Uses raw SQL with psycopg2 (no ORM).
"""

import json
from datetime import datetime
from typing import Sequence

from psycopg2.extensions import cursor as PgCursor

from holdfast.infra.db import conditional_update, fetchall, fetchone

_COLUMNS = """
    id, property_id, customer_id, check_in, check_out, status,
    hold_expires_at, review_deadline_at, total_price,
    cancel_policy_id, cancel_policy_snapshot, created_at, updated_at
"""


def _row_to_booking(row: tuple) -> dict:
    return {
        "id": str(row[0]),
        "property_id": row[1],
        "customer_id": row[2],
        "check_in": row[3],
        "check_out": row[4],
        "status": row[5],
        "hold_expires_at": row[6],
        "review_deadline_at": row[7],
        "total_price": row[8],
        "cancel_policy_id": str(row[9]) if row[9] is not None else None,
        "cancel_policy_snapshot": row[10],
        "created_at": row[11],
        "updated_at": row[12],
    }


def insert_booking(
    cur: PgCursor,
    *,
    property_id: str,
    customer_id: str,
    check_in: datetime,
    check_out: datetime,
    status: str,
    hold_expires_at: datetime | None,
    review_deadline_at: datetime | None,
    total_price: int,
) -> dict:
    row = fetchone(
        cur,
        f"""
        INSERT INTO bookings (
            property_id, customer_id, check_in, check_out, status,
            hold_expires_at, review_deadline_at, total_price
        )
        VALUES (%s, %s, %s, %s, %s, %s, %s, %s)
        RETURNING {_COLUMNS}
        """,
        (
            property_id,
            customer_id,
            check_in,
            check_out,
            status,
            hold_expires_at,
            review_deadline_at,
            total_price,
        ),
    )
    return _row_to_booking(row)


def get_booking(cur: PgCursor, booking_id: str, *, for_update: bool = False) -> dict | None:
    query = f"SELECT {_COLUMNS} FROM bookings WHERE id = %s"
    if for_update:
        query += " FOR UPDATE"
    row = fetchone(cur, query, (booking_id,))
    return _row_to_booking(row) if row is not None else None


def transition_status(
    cur: PgCursor,
    booking_id: str,
    *,
    from_statuses: Sequence[str],
    to_status: str,
    expires_before: datetime | None = None,
) -> int:
    """Compare-and-swap the booking status.

    Only rows whose status is in ``from_statuses`` (and, when given, whose
    hold expired before ``expires_before``) are updated.

    Returns:
        Affected rows (0 or 1). Only the caller that gets 1 may touch
        inventory for this booking.
    """
    query = """
        UPDATE bookings
        SET status = %s, updated_at = now()
        WHERE id = %s
          AND status = ANY(%s)
    """
    params: list = [to_status, booking_id, list(from_statuses)]
    if expires_before is not None:
        query += " AND hold_expires_at < %s"
        params.append(expires_before)
    return conditional_update(cur, query, params)


def list_expired(cur: PgCursor, *, now: datetime, limit: int) -> list[dict]:
    """Oldest-first page of HOLD/REVIEW bookings whose deadline passed."""
    rows = fetchall(
        cur,
        f"""
        SELECT {_COLUMNS}
        FROM bookings
        WHERE status IN ('HOLD', 'REVIEW')
          AND hold_expires_at < %s
        ORDER BY hold_expires_at ASC
        LIMIT %s
        """,
        (now, limit),
    )
    return [_row_to_booking(r) for r in rows]


def count_recent_for_customer(
    cur: PgCursor, *, customer_id: str, since: datetime, limit: int
) -> int:
    row = fetchone(
        cur,
        """
        SELECT COUNT(*) FROM (
            SELECT 1 FROM bookings
            WHERE customer_id = %s AND created_at >= %s
            LIMIT %s
        ) recent
        """,
        (customer_id, since, limit),
    )
    return int(row[0])


def set_cancel_policy(
    cur: PgCursor, booking_id: str, *, policy_id: str, snapshot: dict
) -> dict | None:
    row = fetchone(
        cur,
        f"""
        UPDATE bookings
        SET cancel_policy_id = %s, cancel_policy_snapshot = %s::jsonb, updated_at = now()
        WHERE id = %s
        RETURNING {_COLUMNS}
        """,
        (policy_id, json.dumps(snapshot), booking_id),
    )
    return _row_to_booking(row) if row is not None else None


def get_cancel_policy(cur: PgCursor, policy_id: str) -> dict | None:
    row = fetchone(
        cur,
        """
        SELECT id, name, rules, check_in_hour, cutoff_hour, is_active
        FROM cancel_policies
        WHERE id = %s
        """,
        (policy_id,),
    )
    if row is None:
        return None
    return {
        "id": str(row[0]),
        "name": row[1],
        "rules": row[2] or [],
        "check_in_hour": row[3],
        "cutoff_hour": row[4],
        "is_active": row[5],
    }
