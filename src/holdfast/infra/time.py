"""Time utilities for consistent timestamp handling."""

from datetime import datetime, timezone
from typing import Protocol


def utc_now() -> datetime:
    """Return current UTC timestamp (timezone-aware)."""
    return datetime.now(timezone.utc)


class Clock(Protocol):
    """Source of the current instant; swapped out in tests."""

    def now(self) -> datetime:
        ...


class SystemClock:
    """Wall clock in UTC."""

    def now(self) -> datetime:
        return utc_now()
