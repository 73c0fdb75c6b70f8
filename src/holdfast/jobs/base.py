"""Shared wrapper for periodic jobs guarded by a distributed lock."""

from __future__ import annotations

from typing import Any

from holdfast.domain.ports import DistributedLock
from holdfast.observability.correlation import new_job_correlation_id, reset_correlation_id
from holdfast.observability.logging import get_logger
from holdfast.observability.redaction import safe_log_context

logger = get_logger(__name__)


class LockedJob:
    """Run ``execute()`` only on the worker that holds ``lock_key``.

    ``run_once`` is the scheduler entry point: a tick that cannot take the lock
    is skipped silently, and failures are logged, never raised, so the
    scheduler keeps ticking. ``run_exclusive`` takes the same lock but lets
    failures propagate to the caller. Both always release the lock.
    """

    name = "job"
    lock_key = "job"

    def __init__(self, lock: DistributedLock, lock_ttl_sec: int) -> None:
        self._lock = lock
        self._lock_ttl_sec = lock_ttl_sec

    def execute(self) -> Any:
        raise NotImplementedError

    def run_exclusive(self) -> Any:
        """Run one pass under the lock; None if another worker holds it."""
        if not self._lock.acquire(self.lock_key, self._lock_ttl_sec):
            return None

        token = new_job_correlation_id(self.name)
        try:
            return self.execute()
        finally:
            self._lock.release(self.lock_key)
            reset_correlation_id(token)

    def run_once(self) -> Any:
        try:
            return self.run_exclusive()
        except Exception:
            logger.exception(
                "job failed",
                extra={"extra_fields": safe_log_context(job=self.name)},
            )
            return None
