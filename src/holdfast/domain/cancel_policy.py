"""Cancel policy snapshots and refund previews.

A policy is copied onto the booking when attached, so later edits to the
policy never change what an existing booking is entitled to.
"""

from __future__ import annotations

from datetime import datetime

from holdfast.config import BookingSettings
from holdfast.domain import outbox as topics
from holdfast.domain.dates import calendar_days_between
from holdfast.domain.errors import InvalidRequestError, NotFoundError
from holdfast.domain.outbox import OutboxEmitter
from holdfast.domain.ports import Store
from holdfast.infra.time import Clock, SystemClock


def refund_percent(days_before: int, rules: list[dict]) -> int:
    """Percent of the first rule (largest ``before_days`` first) that applies."""
    for rule in sorted(rules, key=lambda r: r["before_days"], reverse=True):
        if days_before >= rule["before_days"]:
            return int(rule["refund_percent"])
    return 0


class CancelPolicyService:
    def __init__(
        self,
        store: Store,
        outbox: OutboxEmitter,
        settings: BookingSettings,
        clock: Clock | None = None,
    ) -> None:
        self._store = store
        self._outbox = outbox
        self._settings = settings
        self._clock = clock or SystemClock()

    def attach_cancel_policy(self, booking_id: str, policy_id: str) -> dict:
        if not booking_id or not policy_id:
            raise InvalidRequestError("bookingId/cancelPolicyId required")

        with self._store.transaction() as uow:
            booking = uow.get_booking(booking_id, for_update=True)
            if booking is None:
                raise NotFoundError("Booking not found")

            policy = uow.get_cancel_policy(policy_id)
            if policy is None or not policy["is_active"]:
                raise NotFoundError("Cancel policy not found or inactive")

            snapshot = {
                "name": policy["name"],
                "rules": list(policy["rules"] or []),
                "check_in_hour": policy.get("check_in_hour"),
                "cutoff_hour": policy.get("cutoff_hour"),
            }
            updated = uow.set_cancel_policy(booking_id, policy_id=policy_id, snapshot=snapshot)
            self._outbox.emit_in_tx(
                uow,
                topics.BOOKING_POLICY_ATTACHED,
                f"{topics.BOOKING_POLICY_ATTACHED}:{booking_id}",
                {"booking_id": booking_id, "cancel_policy_id": policy_id},
            )
        return updated

    def preview_refund(self, booking_id: str, cancel_at: datetime | None = None) -> dict:
        """Refund the booking would get if cancelled at ``cancel_at``.

        Days before check-in are counted in calendar days of the business
        timezone, so the time of day of the cancellation does not matter.
        """
        with self._store.transaction() as uow:
            booking = uow.get_booking(booking_id)
        if booking is None:
            raise NotFoundError("Booking not found")

        snapshot = booking.get("cancel_policy_snapshot") or {}
        rules = snapshot.get("rules") or []
        if not rules:
            return {"percent": 0, "refund_amount": 0}

        cancel_at = cancel_at or self._clock.now()
        days_before = calendar_days_between(cancel_at, booking["check_in"], self._settings.tz)
        percent = refund_percent(days_before, rules)
        return {
            "percent": percent,
            "refund_amount": booking["total_price"] * percent // 100,
        }
