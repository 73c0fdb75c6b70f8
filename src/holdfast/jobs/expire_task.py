"""Hold expiry sweep, run every minute by the worker scheduler."""

from __future__ import annotations

from holdfast.domain.bookings import BookingService
from holdfast.domain.ports import DistributedLock
from holdfast.infra.time import Clock, SystemClock
from holdfast.jobs.base import LockedJob
from holdfast.observability.logging import get_logger
from holdfast.observability.redaction import safe_log_context

logger = get_logger(__name__)

EXPIRE_LOCK_KEY = "job:expire-holds"


class ExpireHoldsTask(LockedJob):
    name = "expire-holds"
    lock_key = EXPIRE_LOCK_KEY

    def __init__(
        self,
        bookings: BookingService,
        lock: DistributedLock,
        lock_ttl_sec: int = 55,
        clock: Clock | None = None,
    ) -> None:
        super().__init__(lock, lock_ttl_sec)
        self._bookings = bookings
        self._clock = clock or SystemClock()

    def execute(self) -> dict[str, int]:
        result = self._bookings.expire_holds(self._clock.now())
        logger.info(
            "expire holds tick",
            extra={"extra_fields": safe_log_context(expired=result["expired"])},
        )
        return result
