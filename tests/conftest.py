"""Shared pytest fixtures for holdfast tests."""
import sys
sys.dont_write_bytecode = True

from datetime import date  # noqa: E402

import pytest  # noqa: E402

from holdfast.config import BookingSettings  # noqa: E402
from holdfast.domain.dates import local_midnight_utc  # noqa: E402
from holdfast.wiring import build_services  # noqa: E402

from fakes import FakeLock, FrozenClock, InMemoryStore, RecordingProducer, StubFraudScorer  # noqa: E402

from helpers import PROPERTY_ID  # noqa: E402


@pytest.fixture
def settings():
    return BookingSettings()


@pytest.fixture
def clock():
    return FrozenClock()


@pytest.fixture
def store(clock):
    return InMemoryStore(clock)


@pytest.fixture
def scorer():
    return StubFraudScorer()


@pytest.fixture
def lock():
    return FakeLock()


@pytest.fixture
def producer():
    return RecordingProducer()


@pytest.fixture
def services(settings, store, lock, producer, clock, scorer):
    return build_services(
        settings,
        store=store,
        lock=lock,
        producer=producer,
        clock=clock,
        fraud_scorer=scorer,
    )


@pytest.fixture
def seed_days(store, settings):
    """Seed consecutive days starting at a local date."""

    def _seed(start: date, prices: list[int], remaining: int = 1, property_id: str = PROPERTY_ID):
        tz = settings.tz
        rows = []
        for offset, price in enumerate(prices):
            day = date.fromordinal(start.toordinal() + offset)
            rows.append(
                store.add_day(
                    property_id, local_midnight_utc(day, tz), price=price, remaining=remaining
                )
            )
        return rows

    return _seed


@pytest.fixture
def auth_env(monkeypatch):
    from helpers import TEST_JWT_SECRET, TEST_TASK_SECRET

    monkeypatch.setenv("AUTH_JWT_SECRET", TEST_JWT_SECRET)
    monkeypatch.setenv("INTERNAL_TASK_SECRET", TEST_TASK_SECRET)


@pytest.fixture
def make_client(services, auth_env):
    """Build a TestClient for a role with the in-memory service graph."""
    from fastapi.testclient import TestClient

    from holdfast.api.deps import get_services
    from holdfast.api.factory import create_app

    def _make(role: str = "public", **kwargs):
        app = create_app(role=role)
        app.dependency_overrides[get_services] = lambda: services
        return TestClient(app, **kwargs)

    return _make


@pytest.fixture
def client(make_client):
    return make_client("public")


@pytest.fixture
def worker_client(make_client):
    return make_client("worker")
