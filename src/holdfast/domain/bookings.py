"""Booking holds - inventory reservation state machine.

A hold reserves one unit of every night in ``[check_in, check_out)`` for a
customer. Inventory is decremented exactly once when the hold is created and
incremented exactly once when it leaves HOLD/REVIEW for CANCELLED (customer
cancel, review rejection or expiry). Every release is gated by a guarded
status transition, so racing releasers cannot double-increment.

Status flow::

    HOLD    --cancel/expire-->   CANCELLED
    REVIEW  --approve-->         HOLD
    REVIEW  --reject/expire-->   CANCELLED
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Any

from holdfast.config import HOLD_ENDPOINT, BookingSettings
from holdfast.domain import outbox as topics
from holdfast.domain.dates import count_nights, to_utc_bucket
from holdfast.domain.errors import (
    ConflictError,
    ForbiddenError,
    InvalidRequestError,
    NotAvailableError,
    NotFoundError,
)
from holdfast.domain.fraud import (
    DECISION_AUTO_DECLINED,
    DECISION_PENDING,
    LEVEL_HIGH,
    FraudAssessmentResult,
    FraudScorer,
)
from holdfast.domain.idempotency import GateMode, IdempotencyRegistry
from holdfast.domain.outbox import OutboxEmitter
from holdfast.domain.ports import Store
from holdfast.infra.time import Clock, SystemClock
from holdfast.observability.logging import get_logger
from holdfast.observability.redaction import safe_log_context

logger = get_logger(__name__)

STATUS_HOLD = "HOLD"
STATUS_REVIEW = "REVIEW"
STATUS_CONFIRMED = "CONFIRMED"
STATUS_PAID = "PAID"
STATUS_CANCELLED = "CANCELLED"
STATUS_REFUNDED = "REFUNDED"

RELEASABLE_STATUSES = (STATUS_HOLD, STATUS_REVIEW)


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def hold_snapshot(booking: dict, fraud: FraudAssessmentResult) -> dict:
    """JSON-safe response stored by the idempotency registry and replayed."""
    return {
        "id": booking["id"],
        "status": booking["status"],
        "total_price": booking["total_price"],
        "hold_expires_at": _iso(booking["hold_expires_at"]),
        "fraud": fraud.as_dict(),
    }


class BookingService:
    def __init__(
        self,
        store: Store,
        registry: IdempotencyRegistry,
        fraud_scorer: FraudScorer,
        outbox: OutboxEmitter,
        settings: BookingSettings,
        clock: Clock | None = None,
    ) -> None:
        self._store = store
        self._registry = registry
        self._fraud = fraud_scorer
        self._outbox = outbox
        self._settings = settings
        self._clock = clock or SystemClock()

    def hold(
        self,
        user_id: str,
        property_id: str,
        check_in_raw: str,
        check_out_raw: str,
        idempotency_key: str | None,
    ) -> dict:
        """Reserve inventory for a stay and return the hold snapshot.

        Retries with the same Idempotency-Key and payload return the first
        snapshot without touching inventory.

        Raises:
            InvalidRequestError: Missing input, bad dates or range.
            NotAvailableError: A night is missing, blocked, sold out or was
                taken by a concurrent hold.
            ConflictError: Same key still in progress, or it failed before.
            UnprocessableError: Same key sent with a different payload.
        """
        if not user_id or not property_id or not check_in_raw or not check_out_raw:
            raise InvalidRequestError("Missing fields")
        if not idempotency_key:
            raise InvalidRequestError("Idempotency-Key header required")

        tz = self._settings.tz
        check_in = to_utc_bucket(check_in_raw, tz)
        check_out = to_utc_bucket(check_out_raw, tz)
        nights = count_nights(check_in, check_out)
        if nights <= 0:
            raise InvalidRequestError("Invalid date range")
        if nights > self._settings.max_nights:
            raise InvalidRequestError("Too many nights")

        ttl = timedelta(
            minutes=self._settings.hold_minutes + self._settings.idempotency_buffer_minutes
        )
        gate = self._registry.begin_or_reuse(
            user_id=user_id,
            endpoint=HOLD_ENDPOINT,
            key=idempotency_key,
            payload={
                "user_id": user_id,
                "property_id": property_id,
                "check_in": check_in.isoformat(),
                "check_out": check_out.isoformat(),
            },
            ttl=ttl,
        )
        if gate.mode == GateMode.REUSE:
            return gate.response
        if gate.mode == GateMode.IN_PROGRESS:
            raise ConflictError("Request in progress")

        try:
            snapshot = self._place_hold(user_id, property_id, check_in, check_out, nights)
        except Exception as exc:
            self._registry.complete_failed(gate.token, {"message": str(exc)})
            raise

        self._registry.complete_ok(gate.token, snapshot, resource_id=snapshot["id"])
        logger.info(
            "booking hold placed",
            extra={
                "extra_fields": safe_log_context(
                    booking_id=snapshot["id"],
                    property_id=property_id,
                    status=snapshot["status"],
                    nights=nights,
                    idempotency_key=idempotency_key,
                )
            },
        )
        return snapshot

    def _place_hold(
        self,
        user_id: str,
        property_id: str,
        check_in: datetime,
        check_out: datetime,
        nights: int,
    ) -> dict:
        with self._store.transaction() as uow:
            days = uow.lock_availability(property_id, check_in, check_out)
            if len(days) != nights or any(
                d["is_blocked"] or d["remaining"] <= 0 for d in days
            ):
                raise NotAvailableError("Not available")

            total_price = sum(d["price"] for d in days)

            fraud = self._fraud.assess(user_id, total_price)
            want_review = fraud.needs_review
            now = self._clock.now()

            if fraud.level == LEVEL_HIGH and not fraud.skipped and self._settings.auto_decline_high:
                booking = uow.insert_booking(
                    property_id=property_id,
                    customer_id=user_id,
                    check_in=check_in,
                    check_out=check_out,
                    status=STATUS_CANCELLED,
                    hold_expires_at=None,
                    review_deadline_at=None,
                    total_price=total_price,
                )
                uow.upsert_fraud_assessment(
                    booking_id=booking["id"],
                    user_id=user_id,
                    score=fraud.score,
                    level=fraud.level,
                    reasons=list(fraud.reasons),
                    decision=DECISION_AUTO_DECLINED,
                )
                self._outbox.emit_booking_event(uow, topics.BOOKING_AUTO_DECLINED, booking["id"])
                return hold_snapshot(booking, fraud)

            for day in days:
                if uow.decrement_remaining(day["id"]) != 1:
                    raise NotAvailableError("Race condition on inventory")

            if want_review:
                expires_at = now + timedelta(days=self._settings.review_hold_days)
            else:
                expires_at = now + timedelta(minutes=self._settings.hold_minutes)

            booking = uow.insert_booking(
                property_id=property_id,
                customer_id=user_id,
                check_in=check_in,
                check_out=check_out,
                status=STATUS_REVIEW if want_review else STATUS_HOLD,
                hold_expires_at=expires_at,
                review_deadline_at=expires_at if want_review else None,
                total_price=total_price,
            )

            if want_review:
                uow.upsert_fraud_assessment(
                    booking_id=booking["id"],
                    user_id=user_id,
                    score=fraud.score,
                    level=fraud.level,
                    reasons=list(fraud.reasons),
                    decision=DECISION_PENDING,
                )

            self._outbox.emit_booking_event(uow, topics.BOOKING_HELD, booking["id"])
            if want_review:
                self._outbox.emit_booking_event(
                    uow, topics.BOOKING_REVIEW_PENDING, booking["id"]
                )

            return hold_snapshot(booking, fraud)

    def expire_holds(self, now: datetime | None = None) -> dict[str, int]:
        """Cancel every HOLD/REVIEW booking whose deadline passed before ``now``.

        Pages through candidates oldest first; each booking is released in its
        own transaction so one failure never rolls back the others.
        """
        now = now or self._clock.now()
        expired = 0

        while True:
            with self._store.transaction() as uow:
                page = uow.list_expired_bookings(now, self._settings.expire_batch_size)
            if not page:
                break

            for booking in page:
                if self._expire_one(booking, now):
                    expired += 1

        if expired:
            logger.info(
                "expired holds released",
                extra={"extra_fields": safe_log_context(expired=expired)},
            )
        return {"expired": expired}

    def _expire_one(self, booking: dict, now: datetime) -> bool:
        with self._store.transaction() as uow:
            moved = uow.transition_booking(
                booking["id"],
                from_statuses=RELEASABLE_STATUSES,
                to_status=STATUS_CANCELLED,
                expires_before=now,
            )
            if moved == 0:
                return False
            uow.release_nights(booking["property_id"], booking["check_in"], booking["check_out"])
            self._outbox.emit_booking_event(uow, topics.BOOKING_EXPIRED, booking["id"])
        return True

    def cancel_hold(self, user_id: str, booking_id: str) -> dict:
        """Customer cancel of an unpaid hold; returns the updated booking.

        Raises:
            NotFoundError: Unknown booking.
            ForbiddenError: Booking belongs to someone else.
            ConflictError: Booking already left HOLD/REVIEW.
        """
        with self._store.transaction() as uow:
            booking = uow.get_booking(booking_id)
            if booking is None:
                raise NotFoundError("Booking not found")
            if booking["customer_id"] != user_id:
                raise ForbiddenError("Not your booking")

            moved = uow.transition_booking(
                booking_id, from_statuses=RELEASABLE_STATUSES, to_status=STATUS_CANCELLED
            )
            if moved == 0:
                raise ConflictError("Already processed")

            uow.release_nights(booking["property_id"], booking["check_in"], booking["check_out"])
            self._outbox.emit_booking_event(uow, topics.BOOKING_CANCELLED, booking_id)
            updated = uow.get_booking(booking_id)

        logger.info(
            "booking hold cancelled",
            extra={"extra_fields": safe_log_context(booking_id=booking_id)},
        )
        return updated

    def get_booking(self, user_id: str, booking_id: str) -> dict[str, Any]:
        with self._store.transaction() as uow:
            booking = uow.get_booking(booking_id)
        if booking is None:
            raise NotFoundError("Booking not found")
        if booking["customer_id"] != user_id:
            raise ForbiddenError("Not your booking")
        return booking
