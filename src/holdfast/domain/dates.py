"""Day-bucket arithmetic in the business timezone.

Availability is stored per calendar day of the property's market, expressed
as the UTC instant of that day's local midnight. Every date that enters the
booking core is collapsed onto such a bucket first.
"""

from __future__ import annotations

import re
from datetime import date, datetime, time, timedelta, timezone
from typing import Iterator
from zoneinfo import ZoneInfo

from holdfast.domain.errors import InvalidRequestError

_YMD = re.compile(r"^\d{4}-\d{2}-\d{2}$")

ONE_DAY = timedelta(days=1)


def local_midnight_utc(day: date, tz: ZoneInfo) -> datetime:
    """UTC instant of ``day``'s midnight in ``tz``."""
    return datetime.combine(day, time.min, tzinfo=tz).astimezone(timezone.utc)


def _parse_datetime(raw: str) -> datetime:
    value = raw.strip()
    if value.endswith(("Z", "z")):
        value = value[:-1] + "+00:00"
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def to_utc_bucket(raw: str | date | datetime, tz: ZoneInfo) -> datetime:
    """Normalize a date input onto its business-day bucket.

    Accepts a bare ``YYYY-MM-DD`` (taken as that local date), an ISO datetime
    string (naive values are UTC), or ``date``/``datetime`` objects.

    Raises:
        InvalidRequestError: If the input cannot be parsed.
    """
    if isinstance(raw, datetime):
        moment = raw if raw.tzinfo else raw.replace(tzinfo=timezone.utc)
        return local_midnight_utc(moment.astimezone(tz).date(), tz)
    if isinstance(raw, date):
        return local_midnight_utc(raw, tz)
    if not isinstance(raw, str) or not raw.strip():
        raise InvalidRequestError("Invalid date")

    text = raw.strip()
    try:
        if _YMD.match(text):
            return local_midnight_utc(date.fromisoformat(text), tz)
        moment = _parse_datetime(text)
    except ValueError:
        raise InvalidRequestError("Invalid date")
    return local_midnight_utc(moment.astimezone(tz).date(), tz)


def count_nights(check_in: datetime, check_out: datetime) -> int:
    """Whole nights between two buckets (rounded, so DST shifts collapse)."""
    return round((check_out - check_in).total_seconds() / ONE_DAY.total_seconds())


def iter_buckets(check_in: datetime, check_out: datetime, tz: ZoneInfo) -> Iterator[datetime]:
    """Yield every bucket in ``[check_in, check_out)``."""
    current = check_in.astimezone(tz).date()
    end = check_out.astimezone(tz).date()
    while current < end:
        yield local_midnight_utc(current, tz)
        current += ONE_DAY


def calendar_days_between(earlier: datetime, later: datetime, tz: ZoneInfo) -> int:
    """Calendar-day difference of two instants, measured in ``tz``."""
    return (later.astimezone(tz).date() - earlier.astimezone(tz).date()).days
