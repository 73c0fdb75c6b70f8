"""PostgreSQL implementation of the domain's Store / UnitOfWork.

``PgUnitOfWork`` binds one psycopg2 cursor to the repository functions, so a
domain operation that runs inside ``PgStore.transaction()`` commits every
write (inventory, booking, outbox) in a single database transaction.
"""

from __future__ import annotations

from contextlib import contextmanager
from datetime import datetime
from typing import Any, Callable, Iterator, Sequence

from psycopg2.extensions import connection as PgConnection, cursor as PgCursor

from holdfast.infra.db import get_conn, txn
from holdfast.infra.repositories import (
    availability_repository,
    bookings_repository,
    feature_flags_repository,
    fraud_repository,
    idempotency_repository,
    outbox_repository,
)


class PgUnitOfWork:
    """Repository calls sharing the transaction of ``cur``."""

    def __init__(self, cur: PgCursor) -> None:
        self.cur = cur

    # availability

    def lock_availability(self, property_id: str, start: datetime, end: datetime) -> list[dict]:
        return availability_repository.lock_days(
            self.cur, property_id=property_id, start=start, end=end
        )

    def list_availability(self, property_id: str, start: datetime, end: datetime) -> list[dict]:
        return availability_repository.list_days(
            self.cur, property_id=property_id, start=start, end=end
        )

    def decrement_remaining(self, day_id: str) -> int:
        return availability_repository.decrement_remaining(self.cur, day_id=day_id)

    def release_nights(self, property_id: str, start: datetime, end: datetime) -> int:
        return availability_repository.release_nights(
            self.cur, property_id=property_id, start=start, end=end
        )

    def upsert_availability_day(
        self,
        property_id: str,
        day: datetime,
        *,
        price: int | None,
        remaining: int | None,
        is_blocked: bool | None,
    ) -> dict:
        return availability_repository.upsert_day(
            self.cur,
            property_id=property_id,
            day=day,
            price=price,
            remaining=remaining,
            is_blocked=is_blocked,
        )

    # bookings

    def insert_booking(self, **fields: Any) -> dict:
        return bookings_repository.insert_booking(self.cur, **fields)

    def get_booking(self, booking_id: str, *, for_update: bool = False) -> dict | None:
        return bookings_repository.get_booking(self.cur, booking_id, for_update=for_update)

    def transition_booking(
        self,
        booking_id: str,
        *,
        from_statuses: Sequence[str],
        to_status: str,
        expires_before: datetime | None = None,
    ) -> int:
        return bookings_repository.transition_status(
            self.cur,
            booking_id,
            from_statuses=from_statuses,
            to_status=to_status,
            expires_before=expires_before,
        )

    def list_expired_bookings(self, now: datetime, limit: int) -> list[dict]:
        return bookings_repository.list_expired(self.cur, now=now, limit=limit)

    def count_recent_bookings(self, customer_id: str, since: datetime, limit: int) -> int:
        return bookings_repository.count_recent_for_customer(
            self.cur, customer_id=customer_id, since=since, limit=limit
        )

    def get_cancel_policy(self, policy_id: str) -> dict | None:
        return bookings_repository.get_cancel_policy(self.cur, policy_id)

    def set_cancel_policy(self, booking_id: str, *, policy_id: str, snapshot: dict) -> dict | None:
        return bookings_repository.set_cancel_policy(
            self.cur, booking_id, policy_id=policy_id, snapshot=snapshot
        )

    # fraud

    def upsert_fraud_assessment(self, **fields: Any) -> None:
        fraud_repository.upsert_assessment(self.cur, **fields)

    def get_fraud_assessment(self, booking_id: str, *, for_update: bool = False) -> dict | None:
        return fraud_repository.get_assessment(self.cur, booking_id, for_update=for_update)

    def record_fraud_decision(
        self,
        booking_id: str,
        *,
        decision: str,
        reviewer_id: str,
        note: str | None,
        reviewed_at: datetime,
    ) -> None:
        fraud_repository.record_decision(
            self.cur,
            booking_id,
            decision=decision,
            reviewer_id=reviewer_id,
            note=note,
            reviewed_at=reviewed_at,
        )

    def list_fraud_assessments(self, decision: str, offset: int, limit: int) -> tuple[list[dict], int]:
        return fraud_repository.list_assessments(
            self.cur, decision=decision, offset=offset, limit=limit
        )

    def get_user_created_at(self, user_id: str) -> datetime | None:
        return fraud_repository.get_user_created_at(self.cur, user_id)

    def has_failed_payment_since(self, customer_id: str, since: datetime) -> bool:
        return fraud_repository.has_failed_payment_since(
            self.cur, customer_id=customer_id, since=since
        )

    # feature flags

    def get_feature_flag(self, key: str) -> dict | None:
        return feature_flags_repository.get_flag(self.cur, key)

    # idempotency

    def insert_idempotency(
        self,
        *,
        user_id: str | None,
        endpoint: str,
        key: str,
        request_hash: str,
        expires_at: datetime,
    ) -> str | None:
        return idempotency_repository.insert_in_progress(
            self.cur,
            user_id=user_id,
            endpoint=endpoint,
            key=key,
            request_hash=request_hash,
            expires_at=expires_at,
        )

    def get_idempotency(self, *, user_id: str | None, endpoint: str, key: str) -> dict | None:
        return idempotency_repository.get_by_scope(
            self.cur, user_id=user_id, endpoint=endpoint, key=key
        )

    def complete_idempotency(
        self,
        record_id: str,
        *,
        status: str,
        response: dict | None = None,
        resource_id: str | None = None,
        error: dict | None = None,
    ) -> int:
        return idempotency_repository.complete(
            self.cur,
            record_id,
            status=status,
            response=response,
            resource_id=resource_id,
            error=error,
        )

    def delete_expired_idempotency(self, now: datetime) -> int:
        return idempotency_repository.delete_expired(self.cur, now=now)

    # outbox

    def insert_outbox(
        self,
        topic: str,
        payload: dict | None,
        event_key: str | None = None,
        correlation_id: str | None = None,
    ) -> int:
        return outbox_repository.insert_event(
            self.cur,
            topic=topic,
            payload=payload,
            event_key=event_key,
            correlation_id=correlation_id,
        )

    def fetch_outbox_batch(self, limit: int) -> list[dict]:
        return outbox_repository.fetch_batch(self.cur, limit=limit)

    def delete_outbox(self, ids: list[int]) -> int:
        return outbox_repository.delete_events(self.cur, ids)


class PgStore:
    """Opens one connection per transaction (no pool, like ``txn()``)."""

    def __init__(self, connect: Callable[[], PgConnection] = get_conn) -> None:
        self._connect = connect

    @contextmanager
    def transaction(self) -> Iterator[PgUnitOfWork]:
        conn = self._connect()
        try:
            with txn(conn) as cur:
                yield PgUnitOfWork(cur)
        finally:
            conn.close()
