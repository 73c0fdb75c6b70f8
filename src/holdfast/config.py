"""Runtime settings for the booking core.

Settings are read from the environment once, validated, and passed into the
services that need them. Nothing in the domain reads ``os.environ`` directly.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, replace
from typing import Mapping
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

HOLD_ENDPOINT = "POST /bookings/hold"


class SettingsError(ValueError):
    """Raised when an environment value is missing or out of range."""


def _env_int(
    env: Mapping[str, str], name: str, default: int, *, lo: int, hi: int
) -> int:
    raw = env.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        raise SettingsError(f"{name} must be an integer, got {raw!r}")
    if not lo <= value <= hi:
        raise SettingsError(f"{name} must be between {lo} and {hi}, got {value}")
    return value


def _env_bool(env: Mapping[str, str], name: str, default: bool) -> bool:
    raw = env.get(name)
    if raw is None or raw.strip() == "":
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class BookingSettings:
    """Booking engine configuration.

    Attributes:
        inventory_tz: IANA zone whose midnights define availability buckets.
        hold_minutes: Lifetime of a plain HOLD.
        review_hold_days: Lifetime of a hold parked in REVIEW.
        auto_decline_high: Cancel HIGH risk holds instead of reviewing them.
        max_nights: Longest stay accepted by hold().
        idempotency_buffer_minutes: Extra lifetime of a hold idempotency row
            beyond the hold itself.
        expire_batch_size: Page size of the expiry sweep.
        expire_lock_ttl_sec: TTL of the sweep lock (below the 60s tick).
        expire_interval_sec: Scheduler interval of the sweep.
        idempotency_sweep_minutes: Scheduler interval of the key cleanup.
        outbox_topic_prefix: Prefix applied to every outbox topic.
        outbox_batch: Rows drained per publisher tick.
        outbox_poll_sec: Scheduler interval of the publisher.
        outbox_lock_ttl_sec: TTL of the publisher lock.
        redis_url: Redis used for distributed job locks.
        redis_prefix: Namespace prepended to lock keys.
        scheduler_enabled: Start the in-process scheduler (worker role only).
    """

    inventory_tz: str = "Asia/Ho_Chi_Minh"
    hold_minutes: int = 15
    review_hold_days: int = 1
    auto_decline_high: bool = False
    max_nights: int = 30
    idempotency_buffer_minutes: int = 30
    expire_batch_size: int = 200
    expire_lock_ttl_sec: int = 55
    expire_interval_sec: int = 60
    idempotency_sweep_minutes: int = 10
    outbox_topic_prefix: str = ""
    outbox_batch: int = 200
    outbox_poll_sec: int = 5
    outbox_lock_ttl_sec: int = 10
    redis_url: str = "redis://localhost:6379/0"
    redis_prefix: str = "dev:"
    scheduler_enabled: bool = False

    def __post_init__(self) -> None:
        try:
            ZoneInfo(self.inventory_tz)
        except (ZoneInfoNotFoundError, ValueError):
            raise SettingsError(f"Unknown INVENTORY_TZ {self.inventory_tz!r}")
        if self.expire_lock_ttl_sec >= self.expire_interval_sec:
            raise SettingsError(
                "EXPIRE_LOCK_TTL_SEC must be shorter than EXPIRE_INTERVAL_SEC"
            )

    @property
    def tz(self) -> ZoneInfo:
        return ZoneInfo(self.inventory_tz)

    @classmethod
    def from_env(cls, env: Mapping[str, str] | None = None) -> "BookingSettings":
        """Load settings from environment variables (or an explicit mapping)."""
        if env is None:
            env = os.environ
        defaults = cls()
        return cls(
            inventory_tz=env.get("INVENTORY_TZ") or defaults.inventory_tz,
            hold_minutes=_env_int(env, "HOLD_MINUTES", defaults.hold_minutes, lo=1, hi=180),
            review_hold_days=_env_int(
                env, "REVIEW_HOLD_DAYS", defaults.review_hold_days, lo=1, hi=14
            ),
            auto_decline_high=_env_bool(env, "AUTO_DECLINE_HIGH", defaults.auto_decline_high),
            max_nights=_env_int(env, "MAX_NIGHTS", defaults.max_nights, lo=1, hi=365),
            expire_batch_size=_env_int(
                env, "EXPIRE_BATCH_SIZE", defaults.expire_batch_size, lo=1, hi=10_000
            ),
            expire_lock_ttl_sec=_env_int(
                env, "EXPIRE_LOCK_TTL_SEC", defaults.expire_lock_ttl_sec, lo=1, hi=3600
            ),
            expire_interval_sec=_env_int(
                env, "EXPIRE_INTERVAL_SEC", defaults.expire_interval_sec, lo=2, hi=3600
            ),
            outbox_topic_prefix=env.get("OUTBOX_TOPIC_PREFIX", defaults.outbox_topic_prefix),
            outbox_batch=_env_int(env, "OUTBOX_BATCH", defaults.outbox_batch, lo=1, hi=10_000),
            outbox_poll_sec=_env_int(env, "OUTBOX_POLL_SEC", defaults.outbox_poll_sec, lo=1, hi=3600),
            outbox_lock_ttl_sec=_env_int(
                env, "OUTBOX_LOCK_TTL_SEC", defaults.outbox_lock_ttl_sec, lo=1, hi=3600
            ),
            redis_url=env.get("REDIS_URL") or defaults.redis_url,
            redis_prefix=env.get("REDIS_PREFIX") or f"{env.get('APP_ENV', 'dev')}:",
            scheduler_enabled=_env_bool(env, "SCHEDULER_ENABLED", defaults.scheduler_enabled),
        )

    def with_overrides(self, **changes) -> "BookingSettings":
        return replace(self, **changes)
