"""Fraud scoring and manual review of held bookings.

Scoring runs inside ``hold()``; a MEDIUM or HIGH result parks the booking in
REVIEW with a PENDING assessment. A reviewer then approves it (back to HOLD,
inventory stays reserved) or rejects it (CANCELLED, inventory returned).
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import timedelta
from typing import Protocol

from holdfast.domain import outbox as topics
from holdfast.domain.errors import InvalidRequestError, NotFoundError
from holdfast.domain.feature_flags import FeatureFlags
from holdfast.domain.outbox import OutboxEmitter
from holdfast.domain.ports import Store
from holdfast.infra.time import Clock, SystemClock
from holdfast.observability.logging import get_logger
from holdfast.observability.redaction import safe_log_context

logger = get_logger(__name__)

LEVEL_LOW = "LOW"
LEVEL_MEDIUM = "MEDIUM"
LEVEL_HIGH = "HIGH"

DECISION_PENDING = "PENDING"
DECISION_APPROVED = "APPROVED"
DECISION_REJECTED = "REJECTED"
DECISION_AUTO_DECLINED = "AUTO_DECLINED"

FRAUD_CHECK_FLAG = "fraud_check"

MEDIUM_THRESHOLD = 40
HIGH_THRESHOLD = 60
HIGH_AMOUNT = 10_000_000
RECENT_HOLDS_THRESHOLD = 5


@dataclass(frozen=True)
class FraudAssessmentResult:
    score: int
    level: str
    reasons: list[str] = field(default_factory=list)
    skipped: bool = False

    @property
    def needs_review(self) -> bool:
        return not self.skipped and self.level in (LEVEL_MEDIUM, LEVEL_HIGH)

    def as_dict(self) -> dict:
        return asdict(self)


SKIPPED = FraudAssessmentResult(score=0, level=LEVEL_LOW, reasons=[], skipped=True)


class FraudScorer(Protocol):
    def assess(self, user_id: str, amount: int) -> FraudAssessmentResult: ...


def level_for(score: int) -> str:
    if score >= HIGH_THRESHOLD:
        return LEVEL_HIGH
    if score >= MEDIUM_THRESHOLD:
        return LEVEL_MEDIUM
    return LEVEL_LOW


class RuleBasedFraudScorer:
    """Additive rule score, gated per user by the ``fraud_check`` flag.

    Rules:
        new_user_lt3d       account younger than 3 days        +20
        many_holds_24h      5+ bookings in the last 24 hours   +25
        recent_failed_pay   failed payment in the last 7 days  +30
        high_amount_10m     amount of 10,000,000 or more       +10
    """

    def __init__(self, store: Store, flags: FeatureFlags, clock: Clock | None = None) -> None:
        self._store = store
        self._flags = flags
        self._clock = clock or SystemClock()

    def assess(self, user_id: str, amount: int) -> FraudAssessmentResult:
        if not user_id:
            raise InvalidRequestError("userId is required")

        if not self._flags.is_enabled_for_user(FRAUD_CHECK_FLAG, user_id):
            return SKIPPED

        now = self._clock.now()
        rules: list[tuple[int, str]] = []

        with self._store.transaction() as uow:
            created_at = uow.get_user_created_at(user_id)
            if created_at is not None and now - created_at < timedelta(days=3):
                rules.append((20, "new_user_lt3d"))

            recent = uow.count_recent_bookings(
                user_id, now - timedelta(days=1), RECENT_HOLDS_THRESHOLD
            )
            if recent >= RECENT_HOLDS_THRESHOLD:
                rules.append((25, "many_holds_24h"))

            if uow.has_failed_payment_since(user_id, now - timedelta(days=7)):
                rules.append((30, "recent_failed_pay"))

        if amount >= HIGH_AMOUNT:
            rules.append((10, "high_amount_10m"))

        score = sum(points for points, _ in rules)
        return FraudAssessmentResult(
            score=score,
            level=level_for(score),
            reasons=[reason for _, reason in rules],
            skipped=False,
        )


class FraudReviewService:
    """Reviewer-facing operations on fraud assessments."""

    def __init__(self, store: Store, outbox: OutboxEmitter, clock: Clock | None = None) -> None:
        self._store = store
        self._outbox = outbox
        self._clock = clock or SystemClock()

    def get_case(self, booking_id: str) -> dict:
        with self._store.transaction() as uow:
            assessment = uow.get_fraud_assessment(booking_id)
            if assessment is None:
                raise NotFoundError("FraudAssessment not found")
            return {**assessment, "booking": uow.get_booking(booking_id)}

    def list_cases(
        self, decision: str = DECISION_PENDING, offset: int = 0, limit: int = 20
    ) -> dict:
        with self._store.transaction() as uow:
            items, total = uow.list_fraud_assessments(decision, offset, limit)
        return {"items": items, "total": total, "offset": offset, "limit": limit}

    def decide(
        self,
        booking_id: str,
        reviewer_id: str,
        decision: str,
        note: str | None = None,
    ) -> dict:
        """Approve or reject a booking under review.

        Repeating a decision on an already decided case returns the case
        unchanged.

        Raises:
            InvalidRequestError: Bad arguments or booking not in REVIEW.
            NotFoundError: No assessment for this booking.
        """
        if not booking_id or not reviewer_id:
            raise InvalidRequestError("bookingId/reviewerId required")
        if decision not in (DECISION_APPROVED, DECISION_REJECTED):
            raise InvalidRequestError("Invalid decision")

        with self._store.transaction() as uow:
            assessment = uow.get_fraud_assessment(booking_id, for_update=True)
            if assessment is None:
                raise NotFoundError("FraudAssessment not found")

            if assessment["decision"] != DECISION_PENDING:
                return {**assessment, "booking": uow.get_booking(booking_id)}

            booking = uow.get_booking(booking_id, for_update=True)
            if booking is None:
                raise NotFoundError("Booking not found")
            if booking["status"] != "REVIEW":
                raise InvalidRequestError("Booking is not in REVIEW")

            uow.record_fraud_decision(
                booking_id,
                decision=decision,
                reviewer_id=reviewer_id,
                note=note,
                reviewed_at=self._clock.now(),
            )

            if decision == DECISION_APPROVED:
                uow.transition_booking(booking_id, from_statuses=("REVIEW",), to_status="HOLD")
                self._outbox.emit_booking_event(uow, topics.BOOKING_REVIEW_APPROVED, booking_id)
            else:
                moved = uow.transition_booking(
                    booking_id, from_statuses=("REVIEW",), to_status="CANCELLED"
                )
                if moved == 1:
                    uow.release_nights(
                        booking["property_id"], booking["check_in"], booking["check_out"]
                    )
                self._outbox.emit_booking_event(uow, topics.BOOKING_REVIEW_REJECTED, booking_id)

            result = {
                **uow.get_fraud_assessment(booking_id),
                "booking": uow.get_booking(booking_id),
            }

        logger.info(
            "fraud review decided",
            extra={
                "extra_fields": safe_log_context(
                    booking_id=booking_id, reviewer_id=reviewer_id, decision=decision
                )
            },
        )
        return result
