"""Idempotency repository - request dedupe registry.

Uses raw SQL with psycopg2 (no ORM). The unique index on
(user_id, endpoint, idempotency_key) NULLS NOT DISTINCT is what serializes
duplicate requests.
"""

import json
from datetime import datetime

from psycopg2.extensions import cursor as PgCursor

from holdfast.infra.db import conditional_update, fetchone


def insert_in_progress(
    cur: PgCursor,
    *,
    user_id: str | None,
    endpoint: str,
    key: str,
    request_hash: str,
    expires_at: datetime,
) -> str | None:
    """Claim the scope with an IN_PROGRESS row.

    Returns:
        The new row id, or None if the scope already exists.
    """
    row = fetchone(
        cur,
        """
        INSERT INTO idempotency_keys (
            user_id, endpoint, idempotency_key, request_hash, status, expires_at
        )
        VALUES (%s, %s, %s, %s, 'IN_PROGRESS', %s)
        ON CONFLICT (user_id, endpoint, idempotency_key) DO NOTHING
        RETURNING id
        """,
        (user_id, endpoint, key, request_hash, expires_at),
    )
    return str(row[0]) if row is not None else None


def get_by_scope(
    cur: PgCursor,
    *,
    user_id: str | None,
    endpoint: str,
    key: str,
) -> dict | None:
    row = fetchone(
        cur,
        """
        SELECT id, request_hash, status, response, resource_id, expires_at
        FROM idempotency_keys
        WHERE user_id IS NOT DISTINCT FROM %s
          AND endpoint = %s
          AND idempotency_key = %s
        """,
        (user_id, endpoint, key),
    )
    if row is None:
        return None
    return {
        "id": str(row[0]),
        "request_hash": row[1],
        "status": row[2],
        "response": row[3],
        "resource_id": row[4],
        "expires_at": row[5],
    }


def complete(
    cur: PgCursor,
    record_id: str,
    *,
    status: str,
    response: dict | None = None,
    resource_id: str | None = None,
    error: dict | None = None,
) -> int:
    """Move an IN_PROGRESS row to its terminal status (once)."""
    return conditional_update(
        cur,
        """
        UPDATE idempotency_keys
        SET status = %s,
            response = %s::jsonb,
            resource_id = %s,
            error = %s::jsonb,
            updated_at = now()
        WHERE id = %s
          AND status = 'IN_PROGRESS'
        """,
        (
            status,
            json.dumps(response) if response is not None else None,
            resource_id,
            json.dumps(error) if error is not None else None,
            record_id,
        ),
    )


def delete_expired(cur: PgCursor, *, now: datetime) -> int:
    return conditional_update(
        cur,
        "DELETE FROM idempotency_keys WHERE expires_at < %s",
        (now,),
    )
