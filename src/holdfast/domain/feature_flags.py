"""Feature flags with per-user percentage rollout.

Flag payload (all optional)::

    {"rollout": 0..100, "salt": "...", "allow_users": [...], "deny_users": [...]}
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from holdfast.domain.ports import Store
from holdfast.infra.hashing import bucket_of


def clamp_percent(value: Any, default: int = 100) -> int:
    try:
        n = float(value)
    except (TypeError, ValueError):
        return default
    if n != n or n in (float("inf"), float("-inf")):
        return default
    return max(0, min(100, int(n)))


@dataclass(frozen=True)
class FlagDecision:
    on: bool
    reason: str
    bucket: int | None = None
    rollout: int | None = None


def decide_for_user(flag: dict | None, key: str, user_id: str | None) -> FlagDecision:
    """Evaluate a flag row for one user. Deny beats allow beats rollout."""
    if not flag or not flag.get("enabled"):
        return FlagDecision(on=False, reason="disabled")

    payload = flag.get("payload") or {}
    deny = payload.get("deny_users") or []
    allow = payload.get("allow_users") or []

    if user_id and user_id in deny:
        return FlagDecision(on=False, reason="deny")
    if user_id and user_id in allow:
        return FlagDecision(on=True, reason="allow")

    rollout = clamp_percent(payload.get("rollout"), 100)
    salt = str(payload.get("salt") or key)

    if not user_id:
        if rollout >= 100:
            return FlagDecision(on=True, reason="percent_above", rollout=rollout)
        return FlagDecision(on=False, reason="anon_requires_100", rollout=rollout)

    bucket = bucket_of(f"{salt}:{user_id}")
    on = bucket < rollout
    return FlagDecision(
        on=on,
        reason="percent_above" if on else "percent_below",
        bucket=bucket,
        rollout=rollout,
    )


class FeatureFlags:
    def __init__(self, store: Store) -> None:
        self._store = store

    def _load(self, key: str) -> dict | None:
        with self._store.transaction() as uow:
            return uow.get_feature_flag(key)

    def is_enabled(self, key: str) -> bool:
        flag = self._load(key)
        return bool(flag and flag.get("enabled"))

    def is_enabled_for_user(self, key: str, user_id: str | None) -> bool:
        return decide_for_user(self._load(key), key, user_id).on
