"""Host-managed availability calendar."""

from __future__ import annotations

from datetime import date, datetime
from typing import Any, Iterable

from holdfast.config import BookingSettings
from holdfast.domain.dates import ONE_DAY, count_nights, to_utc_bucket
from holdfast.domain.errors import InvalidRequestError
from holdfast.domain.ports import Store
from holdfast.infra.time import Clock, SystemClock
from holdfast.observability.logging import get_logger
from holdfast.observability.redaction import safe_log_context

logger = get_logger(__name__)

MAX_CALENDAR_ITEMS = 366
MAX_WINDOW_DAYS = 366
DEFAULT_WINDOW_DAYS = 60


def _optional_non_negative_int(value: Any, field: str) -> int | None:
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise InvalidRequestError(f"{field} must be a non-negative integer")
    return value


class AvailabilityService:
    def __init__(
        self, store: Store, settings: BookingSettings, clock: Clock | None = None
    ) -> None:
        self._store = store
        self._settings = settings
        self._clock = clock or SystemClock()

    def upsert_days(self, property_id: str, days: Iterable[dict]) -> dict:
        """Create calendar days or update the fields sent for existing ones.

        Each item is ``{date, price?, remaining?, is_blocked?}``. A missing or
        None field keeps the stored value; a new day needs ``price``. Sending
        ``is_blocked: true`` forces ``remaining = 0``. Duplicate dates keep the
        last item.
        """
        items = list(days)
        if not property_id:
            raise InvalidRequestError("property_id is required")
        if not items:
            raise InvalidRequestError("items is required")
        if len(items) > MAX_CALENDAR_ITEMS:
            raise InvalidRequestError(f"items too many (> {MAX_CALENDAR_ITEMS})")

        tz = self._settings.tz
        by_day: dict[datetime, dict] = {}
        for item in items:
            bucket = to_utc_bucket(item.get("date"), tz)
            price = _optional_non_negative_int(item.get("price"), "price")
            remaining = _optional_non_negative_int(item.get("remaining"), "remaining")
            is_blocked = item.get("is_blocked")
            if is_blocked is not None:
                is_blocked = bool(is_blocked)
            if is_blocked:
                remaining = 0
            by_day[bucket] = {"price": price, "remaining": remaining, "is_blocked": is_blocked}

        buckets = sorted(by_day)
        with self._store.transaction() as uow:
            existing = {
                row["date"]
                for row in uow.lock_availability(property_id, buckets[0], buckets[-1] + ONE_DAY)
            }
            for bucket in buckets:
                if bucket not in existing and by_day[bucket]["price"] is None:
                    local_day = bucket.astimezone(tz).date()
                    raise InvalidRequestError(f"price required on create for date={local_day}")
            rows = [
                uow.upsert_availability_day(property_id, bucket, **by_day[bucket])
                for bucket in buckets
            ]

        logger.info(
            "availability upserted",
            extra={"extra_fields": safe_log_context(property_id=property_id, days=len(rows))},
        )
        return {"updated": len(rows), "items": rows}

    def list_days(
        self,
        property_id: str,
        start: str | date | datetime | None = None,
        end: str | date | datetime | None = None,
    ) -> dict:
        """Calendar rows in ``[start, end)``; defaults to the next 60 days."""
        tz = self._settings.tz
        start_bucket = to_utc_bucket(start if start is not None else self._clock.now(), tz)
        if end is not None:
            end_bucket = to_utc_bucket(end, tz)
        else:
            end_bucket = to_utc_bucket(start_bucket + DEFAULT_WINDOW_DAYS * ONE_DAY, tz)

        window = count_nights(start_bucket, end_bucket)
        if window < 0:
            raise InvalidRequestError("to must be >= from")
        if window > MAX_WINDOW_DAYS:
            raise InvalidRequestError(f"window too large (> {MAX_WINDOW_DAYS} days)")

        with self._store.transaction() as uow:
            rows = uow.list_availability(property_id, start_bucket, end_bucket)
        return {"from": start_bucket, "to": end_bucket, "days": rows}
