"""Tests for the locked periodic jobs and scheduler wiring."""

from datetime import date, timedelta
from unittest.mock import MagicMock

import pytest

from holdfast.jobs import base
from holdfast.jobs.expire_task import EXPIRE_LOCK_KEY, ExpireHoldsTask
from holdfast.jobs.idempotency_cleanup import CLEANUP_LOCK_KEY
from holdfast.jobs.scheduler import (
    EXPIRE_JOB_ID,
    IDEMPOTENCY_JOB_ID,
    OUTBOX_JOB_ID,
    build_scheduler,
)
from holdfast.observability.correlation import get_correlation_id

from fakes import FakeLock
from helpers import PROPERTY_ID


@pytest.fixture
def expired_hold(services, seed_days, clock):
    seed_days(date(2025, 12, 1), [100])
    snapshot = services.bookings.hold("u1", PROPERTY_ID, "2025-12-01", "2025-12-02", "job-key-1")
    clock.advance(minutes=16)
    return snapshot


class TestExpireHoldsTask:
    def test_runs_under_lock(self, services, store, lock, expired_hold):
        assert services.expire_task.run_once() == {"expired": 1}

        assert lock.acquired == [(EXPIRE_LOCK_KEY, 55)]
        assert lock.released == [EXPIRE_LOCK_KEY]
        assert store.remaining(PROPERTY_ID) == [1]
        assert store.state.bookings[expired_hold["id"]]["status"] == "CANCELLED"

    def test_skips_when_lock_taken(self, services, store, expired_hold):
        task = ExpireHoldsTask(services.bookings, FakeLock(available=False), clock=services.clock)

        assert task.run_once() is None
        assert store.state.bookings[expired_hold["id"]]["status"] == "HOLD"

    def test_second_worker_skips_while_first_runs(self, services, lock):
        lock.acquire(EXPIRE_LOCK_KEY, 55)
        assert services.expire_task.run_once() is None
        assert lock.released == []

    def test_failure_is_logged_and_lock_released(self, services, lock, monkeypatch):
        fake_logger = MagicMock()
        monkeypatch.setattr(base, "logger", fake_logger)
        monkeypatch.setattr(
            services.bookings, "expire_holds", MagicMock(side_effect=RuntimeError("db down"))
        )

        assert services.expire_task.run_once() is None

        fake_logger.exception.assert_called_once()
        assert lock.released == [EXPIRE_LOCK_KEY]
        assert lock.held == set()

    def test_binds_job_correlation_id(self, services, monkeypatch):
        seen = []
        monkeypatch.setattr(
            services.bookings,
            "expire_holds",
            lambda now: seen.append(get_correlation_id()) or {"expired": 0},
        )

        services.expire_task.run_once()

        assert seen[0].startswith("expire-holds:")
        assert get_correlation_id() == ""

    def test_run_exclusive_raises_and_releases(self, services, lock, monkeypatch):
        monkeypatch.setattr(
            services.bookings, "expire_holds", MagicMock(side_effect=RuntimeError("db down"))
        )

        with pytest.raises(RuntimeError, match="db down"):
            services.expire_task.run_exclusive()

        assert lock.released == [EXPIRE_LOCK_KEY]
        assert lock.held == set()
        assert get_correlation_id() == ""


class TestIdempotencyCleanupTask:
    def test_sweeps_expired_keys(self, services, store, lock, clock):
        for key in ("cleanup-key-1", "cleanup-key-2"):
            services.registry.begin_or_reuse(
                user_id="u1", endpoint="POST /x", key=key, payload={}, ttl=timedelta(minutes=5)
            )
        services.registry.begin_or_reuse(
            user_id="u1", endpoint="POST /x", key="cleanup-key-3", payload={}, ttl=timedelta(hours=2)
        )
        clock.advance(minutes=10)

        assert services.cleanup_task.run_once() == {"deleted": 2}
        assert len(store.state.idempotency) == 1
        assert lock.released == [CLEANUP_LOCK_KEY]


class TestScheduler:
    def test_registers_jobs(self, services, settings):
        scheduler = build_scheduler(
            settings, services.expire_task, services.cleanup_task, services.publisher
        )

        jobs = {job.id: job for job in scheduler.get_jobs()}

        assert set(jobs) == {EXPIRE_JOB_ID, IDEMPOTENCY_JOB_ID, OUTBOX_JOB_ID}
        assert jobs[EXPIRE_JOB_ID].trigger.interval == timedelta(seconds=60)
        assert jobs[IDEMPOTENCY_JOB_ID].trigger.interval == timedelta(minutes=10)
        assert jobs[OUTBOX_JOB_ID].trigger.interval == timedelta(seconds=5)
        assert all(job.max_instances == 1 and job.coalesce for job in jobs.values())

    def test_jobs_call_tasks(self, services, settings):
        scheduler = build_scheduler(
            settings, services.expire_task, services.cleanup_task, services.publisher
        )
        jobs = {job.id: job for job in scheduler.get_jobs()}

        assert jobs[EXPIRE_JOB_ID].func == services.expire_task.run_once
        assert jobs[OUTBOX_JOB_ID].func == services.publisher.tick
