"""Periodic removal of expired idempotency keys."""

from __future__ import annotations

from holdfast.domain.idempotency import IdempotencyRegistry
from holdfast.domain.ports import DistributedLock
from holdfast.infra.time import Clock, SystemClock
from holdfast.jobs.base import LockedJob

CLEANUP_LOCK_KEY = "job:idempotency-cleanup"


class IdempotencyCleanupTask(LockedJob):
    name = "idempotency-cleanup"
    lock_key = CLEANUP_LOCK_KEY

    def __init__(
        self,
        registry: IdempotencyRegistry,
        lock: DistributedLock,
        lock_ttl_sec: int = 55,
        clock: Clock | None = None,
    ) -> None:
        super().__init__(lock, lock_ttl_sec)
        self._registry = registry
        self._clock = clock or SystemClock()

    def execute(self) -> dict[str, int]:
        return {"deleted": self._registry.sweep_expired(self._clock.now())}
