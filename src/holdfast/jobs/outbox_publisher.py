"""Outbox publisher - drains outbox rows to the event bus.

Delivery is at-least-once: rows are deleted in the same transaction that
fetched them, after the producer accepted the batch. A crash between send and
commit re-sends the batch on the next tick, so consumers dedupe on
``x-event-id``.
"""

from __future__ import annotations

from collections import defaultdict
from datetime import datetime

from holdfast.domain.ports import DistributedLock, EventProducer, Store
from holdfast.jobs.base import LockedJob
from holdfast.observability.logging import get_logger
from holdfast.observability.redaction import safe_log_context

logger = get_logger(__name__)

OUTBOX_LOCK_KEY = "job:outbox:publish"
SCHEMA_VERSION = 1


def _iso(value: datetime | str | None) -> str | None:
    if isinstance(value, datetime):
        return value.isoformat()
    return value


def to_message(row: dict) -> dict:
    """Bus message for one outbox row."""
    created_at = _iso(row.get("created_at"))
    headers = {
        "x-event-id": str(row["id"]),
        "x-topic": row["topic"],
        "x-created-at": created_at,
        "x-schema-ver": str(SCHEMA_VERSION),
    }
    if row.get("correlation_id"):
        headers["x-correlation-id"] = row["correlation_id"]
    return {
        "key": row.get("event_key"),
        "value": {
            "id": row["id"],
            "topic": row["topic"],
            "created_at": created_at,
            "payload": row.get("payload") or {},
            "v": SCHEMA_VERSION,
        },
        "headers": headers,
    }


class LoggingProducer:
    """Producer that only logs; used when no bus is configured."""

    def send(self, topic: str, messages: list[dict]) -> None:
        for message in messages:
            logger.info(
                "outbox event",
                extra={
                    "extra_fields": {
                        "topic": topic,
                        "event_key": message["key"],
                        "event_id": message["headers"]["x-event-id"],
                    }
                },
            )


class OutboxPublisher(LockedJob):
    name = "outbox-publish"
    lock_key = OUTBOX_LOCK_KEY

    def __init__(
        self,
        store: Store,
        producer: EventProducer,
        lock: DistributedLock,
        batch_size: int = 200,
        lock_ttl_sec: int = 10,
    ) -> None:
        super().__init__(lock, lock_ttl_sec)
        self._store = store
        self._producer = producer
        self._batch_size = batch_size

    def tick(self) -> dict[str, int] | None:
        return self.run_once()

    def execute(self) -> dict[str, int]:
        with self._store.transaction() as uow:
            rows = uow.fetch_outbox_batch(self._batch_size)
            if not rows:
                return {"published": 0}

            by_topic: dict[str, list[dict]] = defaultdict(list)
            for row in rows:
                by_topic[row["topic"]].append(to_message(row))

            for topic, messages in by_topic.items():
                self._producer.send(topic, messages)

            uow.delete_outbox([row["id"] for row in rows])

        logger.info(
            "outbox batch published",
            extra={
                "extra_fields": safe_log_context(published=len(rows), topics=len(by_topic))
            },
        )
        return {"published": len(rows)}
