"""Outbox repository - transactional event log.

Uses raw SQL with psycopg2 (no ORM). Rows are written inside the business
transaction and removed by the publisher once delivered.
"""

import json

from psycopg2.extensions import cursor as PgCursor

from holdfast.infra.db import conditional_update, fetchall, fetchone


def insert_event(
    cur: PgCursor,
    *,
    topic: str,
    payload: dict | None,
    event_key: str | None = None,
    correlation_id: str | None = None,
) -> int:
    """Append an event to the outbox.

    Args:
        cur: Database cursor (within the business transaction).
        topic: Final topic name (prefix already applied).
        payload: JSON payload (ids only, no PII).
        event_key: Optional partition/dedupe key.
        correlation_id: Optional correlation ID for tracing.

    Returns:
        The generated event ID.
    """
    row = fetchone(
        cur,
        """
        INSERT INTO outbox_events (topic, event_key, payload, correlation_id)
        VALUES (%s, %s, %s::jsonb, %s)
        RETURNING id
        """,
        (topic, event_key, json.dumps(payload or {}), correlation_id),
    )
    return row[0]


def fetch_batch(cur: PgCursor, *, limit: int) -> list[dict]:
    """Oldest-first batch of pending events, skipping rows another
    publisher currently holds."""
    rows = fetchall(
        cur,
        """
        SELECT id, topic, event_key, payload, correlation_id, created_at
        FROM outbox_events
        ORDER BY created_at ASC, id ASC
        LIMIT %s
        FOR UPDATE SKIP LOCKED
        """,
        (limit,),
    )
    return [
        {
            "id": row[0],
            "topic": row[1],
            "event_key": row[2],
            "payload": row[3],
            "correlation_id": row[4],
            "created_at": row[5],
        }
        for row in rows
    ]


def delete_events(cur: PgCursor, ids: list[int]) -> int:
    if not ids:
        return 0
    return conditional_update(
        cur,
        "DELETE FROM outbox_events WHERE id = ANY(%s)",
        (ids,),
    )
