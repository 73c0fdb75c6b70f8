"""Object graph of the booking core.

Built once per process from ``BookingSettings``; tests pass their own store,
lock, clock or producer instead.
"""

from __future__ import annotations

from dataclasses import dataclass

from holdfast.config import BookingSettings
from holdfast.domain.availability import AvailabilityService
from holdfast.domain.bookings import BookingService
from holdfast.domain.cancel_policy import CancelPolicyService
from holdfast.domain.feature_flags import FeatureFlags
from holdfast.domain.fraud import FraudReviewService, FraudScorer, RuleBasedFraudScorer
from holdfast.domain.idempotency import IdempotencyRegistry
from holdfast.domain.outbox import OutboxEmitter
from holdfast.domain.ports import DistributedLock, EventProducer, Store
from holdfast.infra.time import Clock, SystemClock
from holdfast.jobs.expire_task import ExpireHoldsTask
from holdfast.jobs.idempotency_cleanup import IdempotencyCleanupTask
from holdfast.jobs.outbox_publisher import LoggingProducer, OutboxPublisher


@dataclass
class Services:
    settings: BookingSettings
    store: Store
    clock: Clock
    registry: IdempotencyRegistry
    flags: FeatureFlags
    fraud_scorer: FraudScorer
    outbox: OutboxEmitter
    bookings: BookingService
    fraud_review: FraudReviewService
    availability: AvailabilityService
    cancel_policies: CancelPolicyService
    expire_task: ExpireHoldsTask
    cleanup_task: IdempotencyCleanupTask
    publisher: OutboxPublisher


def build_services(
    settings: BookingSettings | None = None,
    *,
    store: Store | None = None,
    lock: DistributedLock | None = None,
    producer: EventProducer | None = None,
    clock: Clock | None = None,
    fraud_scorer: FraudScorer | None = None,
) -> Services:
    settings = settings or BookingSettings.from_env()
    clock = clock or SystemClock()

    if store is None:
        from holdfast.infra.store import PgStore

        store = PgStore()
    if lock is None:
        from holdfast.infra.locks import RedisLock

        lock = RedisLock.from_url(settings.redis_url, settings.redis_prefix)

    registry = IdempotencyRegistry(store, clock)
    flags = FeatureFlags(store)
    scorer = fraud_scorer or RuleBasedFraudScorer(store, flags, clock)
    outbox = OutboxEmitter(store, settings.outbox_topic_prefix)
    bookings = BookingService(store, registry, scorer, outbox, settings, clock)

    return Services(
        settings=settings,
        store=store,
        clock=clock,
        registry=registry,
        flags=flags,
        fraud_scorer=scorer,
        outbox=outbox,
        bookings=bookings,
        fraud_review=FraudReviewService(store, outbox, clock),
        availability=AvailabilityService(store, settings, clock),
        cancel_policies=CancelPolicyService(store, outbox, settings, clock),
        expire_task=ExpireHoldsTask(bookings, lock, settings.expire_lock_ttl_sec, clock),
        cleanup_task=IdempotencyCleanupTask(registry, lock, settings.expire_lock_ttl_sec, clock),
        publisher=OutboxPublisher(
            store,
            producer or LoggingProducer(),
            lock,
            batch_size=settings.outbox_batch,
            lock_ttl_sec=settings.outbox_lock_ttl_sec,
        ),
    )
