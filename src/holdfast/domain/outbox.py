"""Outbox emitter - domain events written alongside the mutation they announce.

Topics emitted by the booking core.
"""

from __future__ import annotations

from holdfast.domain.ports import Store, UnitOfWork
from holdfast.observability.correlation import get_correlation_id

BOOKING_HELD = "booking.held"
BOOKING_REVIEW_PENDING = "booking.review_pending"
BOOKING_REVIEW_APPROVED = "booking.review_approved"
BOOKING_REVIEW_REJECTED = "booking.review_rejected"
BOOKING_AUTO_DECLINED = "booking.auto_declined"
BOOKING_CANCELLED = "booking.cancelled"
BOOKING_EXPIRED = "booking.expired"
BOOKING_POLICY_ATTACHED = "booking.policy_attached"


class OutboxEmitter:
    """Appends outbox rows, applying the configured topic prefix."""

    def __init__(self, store: Store, topic_prefix: str = "") -> None:
        self._store = store
        self._topic_prefix = topic_prefix

    def resolve_topic(self, topic: str) -> str:
        return f"{self._topic_prefix}{topic}"

    def emit_in_tx(
        self,
        uow: UnitOfWork,
        topic: str,
        event_key: str | None,
        payload: dict | None,
    ) -> int:
        """Write the event through ``uow``; it commits iff the caller's
        transaction commits."""
        return uow.insert_outbox(
            self.resolve_topic(topic),
            payload,
            event_key,
            get_correlation_id() or None,
        )

    def emit(self, topic: str, payload: dict | None, event_key: str | None = None) -> int:
        """Write the event in its own short transaction."""
        with self._store.transaction() as uow:
            return self.emit_in_tx(uow, topic, event_key, payload)

    def emit_booking_event(self, uow: UnitOfWork, topic: str, booking_id: str) -> int:
        """Booking events carry only the id and are keyed ``<topic>:<id>``."""
        return self.emit_in_tx(uow, topic, f"{topic}:{booking_id}", {"booking_id": booking_id})
