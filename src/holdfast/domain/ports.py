"""Interfaces the booking core depends on.

The domain never opens a database connection itself. It asks a ``Store`` for
a transaction and works through the ``UnitOfWork`` it yields; everything
written through one unit of work (inventory, bookings, outbox rows) commits
or rolls back together.
"""

from __future__ import annotations

from contextlib import AbstractContextManager
from datetime import datetime
from typing import Any, Protocol, Sequence


class UnitOfWork(Protocol):
    """Repository operations bound to one open transaction."""

    # availability
    def lock_availability(self, property_id: str, start: datetime, end: datetime) -> list[dict]: ...

    def list_availability(self, property_id: str, start: datetime, end: datetime) -> list[dict]: ...

    def decrement_remaining(self, day_id: str) -> int: ...

    def release_nights(self, property_id: str, start: datetime, end: datetime) -> int: ...

    def upsert_availability_day(
        self,
        property_id: str,
        day: datetime,
        *,
        price: int | None,
        remaining: int | None,
        is_blocked: bool | None,
    ) -> dict: ...

    # bookings
    def insert_booking(self, **fields: Any) -> dict: ...

    def get_booking(self, booking_id: str, *, for_update: bool = False) -> dict | None: ...

    def transition_booking(
        self,
        booking_id: str,
        *,
        from_statuses: Sequence[str],
        to_status: str,
        expires_before: datetime | None = None,
    ) -> int: ...

    def list_expired_bookings(self, now: datetime, limit: int) -> list[dict]: ...

    def count_recent_bookings(self, customer_id: str, since: datetime, limit: int) -> int: ...

    def get_cancel_policy(self, policy_id: str) -> dict | None: ...

    def set_cancel_policy(self, booking_id: str, *, policy_id: str, snapshot: dict) -> dict | None: ...

    # fraud
    def upsert_fraud_assessment(self, **fields: Any) -> None: ...

    def get_fraud_assessment(self, booking_id: str, *, for_update: bool = False) -> dict | None: ...

    def record_fraud_decision(
        self,
        booking_id: str,
        *,
        decision: str,
        reviewer_id: str,
        note: str | None,
        reviewed_at: datetime,
    ) -> None: ...

    def list_fraud_assessments(self, decision: str, offset: int, limit: int) -> tuple[list[dict], int]: ...

    def get_user_created_at(self, user_id: str) -> datetime | None: ...

    def has_failed_payment_since(self, customer_id: str, since: datetime) -> bool: ...

    # feature flags
    def get_feature_flag(self, key: str) -> dict | None: ...

    # idempotency
    def insert_idempotency(
        self,
        *,
        user_id: str | None,
        endpoint: str,
        key: str,
        request_hash: str,
        expires_at: datetime,
    ) -> str | None: ...

    def get_idempotency(self, *, user_id: str | None, endpoint: str, key: str) -> dict | None: ...

    def complete_idempotency(
        self,
        record_id: str,
        *,
        status: str,
        response: dict | None = None,
        resource_id: str | None = None,
        error: dict | None = None,
    ) -> int: ...

    def delete_expired_idempotency(self, now: datetime) -> int: ...

    # outbox
    def insert_outbox(
        self,
        topic: str,
        payload: dict | None,
        event_key: str | None = None,
        correlation_id: str | None = None,
    ) -> int: ...

    def fetch_outbox_batch(self, limit: int) -> list[dict]: ...

    def delete_outbox(self, ids: list[int]) -> int: ...


class Store(Protocol):
    def transaction(self) -> AbstractContextManager[UnitOfWork]: ...


class DistributedLock(Protocol):
    """Cross-process mutual exclusion with a TTL (set-if-absent semantics)."""

    def acquire(self, key: str, ttl_seconds: int) -> bool: ...

    def release(self, key: str) -> None: ...


class EventProducer(Protocol):
    """Message bus client the outbox publisher hands batches to."""

    def send(self, topic: str, messages: list[dict]) -> None: ...
