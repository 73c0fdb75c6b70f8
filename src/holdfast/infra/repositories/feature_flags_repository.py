"""Feature flags repository.

Uses raw SQL with psycopg2 (no ORM).
"""

import json

from psycopg2.extensions import cursor as PgCursor

from holdfast.infra.db import fetchone


def get_flag(cur: PgCursor, key: str) -> dict | None:
    row = fetchone(
        cur,
        "SELECT key, enabled, payload FROM feature_flags WHERE key = %s",
        (key,),
    )
    if row is None:
        return None
    return {"key": row[0], "enabled": row[1], "payload": row[2] or {}}


def upsert_flag(cur: PgCursor, *, key: str, enabled: bool, payload: dict | None = None) -> None:
    cur.execute(
        """
        INSERT INTO feature_flags (key, enabled, payload)
        VALUES (%s, %s, %s::jsonb)
        ON CONFLICT (key) DO UPDATE
        SET enabled = EXCLUDED.enabled, payload = EXCLUDED.payload, updated_at = now()
        """,
        (key, enabled, json.dumps(payload or {})),
    )
