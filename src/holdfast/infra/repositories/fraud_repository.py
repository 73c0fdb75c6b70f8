"""Fraud repository - assessments and the signals the scorer reads.

Uses raw SQL with psycopg2 (no ORM).
"""

import json
from datetime import datetime

from psycopg2.extensions import cursor as PgCursor

from holdfast.infra.db import fetchall, fetchone

_COLUMNS = """
    booking_id, user_id, score, level, decision, reasons,
    reviewed_by, reviewed_at, reviewed_note, created_at
"""


def _row_to_assessment(row: tuple) -> dict:
    return {
        "booking_id": str(row[0]),
        "user_id": row[1],
        "score": row[2],
        "level": row[3],
        "decision": row[4],
        "reasons": list(row[5] or []),
        "reviewed_by": row[6],
        "reviewed_at": row[7],
        "reviewed_note": row[8],
        "created_at": row[9],
    }


def upsert_assessment(
    cur: PgCursor,
    *,
    booking_id: str,
    user_id: str,
    score: int,
    level: str,
    reasons: list[str],
    decision: str,
) -> None:
    cur.execute(
        """
        INSERT INTO fraud_assessments (booking_id, user_id, score, level, reasons, decision)
        VALUES (%s, %s, %s, %s, %s::jsonb, %s)
        ON CONFLICT (booking_id) DO UPDATE
        SET score = EXCLUDED.score,
            level = EXCLUDED.level,
            reasons = EXCLUDED.reasons,
            decision = EXCLUDED.decision
        """,
        (booking_id, user_id, score, level, json.dumps(reasons), decision),
    )


def get_assessment(cur: PgCursor, booking_id: str, *, for_update: bool = False) -> dict | None:
    query = f"SELECT {_COLUMNS} FROM fraud_assessments WHERE booking_id = %s"
    if for_update:
        query += " FOR UPDATE"
    row = fetchone(cur, query, (booking_id,))
    return _row_to_assessment(row) if row is not None else None


def record_decision(
    cur: PgCursor,
    booking_id: str,
    *,
    decision: str,
    reviewer_id: str,
    note: str | None,
    reviewed_at: datetime,
) -> None:
    cur.execute(
        """
        UPDATE fraud_assessments
        SET decision = %s, reviewed_by = %s, reviewed_at = %s, reviewed_note = %s
        WHERE booking_id = %s
        """,
        (decision, reviewer_id, reviewed_at, note, booking_id),
    )


def list_assessments(
    cur: PgCursor, *, decision: str, offset: int, limit: int
) -> tuple[list[dict], int]:
    rows = fetchall(
        cur,
        f"""
        SELECT {_COLUMNS}
        FROM fraud_assessments
        WHERE decision = %s
        ORDER BY created_at DESC
        OFFSET %s
        LIMIT %s
        """,
        (decision, offset, limit),
    )
    total = fetchone(
        cur,
        "SELECT COUNT(*) FROM fraud_assessments WHERE decision = %s",
        (decision,),
    )
    return [_row_to_assessment(r) for r in rows], int(total[0])


def get_user_created_at(cur: PgCursor, user_id: str) -> datetime | None:
    row = fetchone(cur, "SELECT created_at FROM users WHERE id = %s", (user_id,))
    return row[0] if row is not None else None


def has_failed_payment_since(cur: PgCursor, *, customer_id: str, since: datetime) -> bool:
    row = fetchone(
        cur,
        """
        SELECT 1
        FROM payments p
        JOIN bookings b ON b.id = p.booking_id
        WHERE b.customer_id = %s
          AND p.status = 'FAILED'
          AND p.created_at >= %s
        LIMIT 1
        """,
        (customer_id, since),
    )
    return row is not None

