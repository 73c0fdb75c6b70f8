"""Tests for the idempotency registry."""

from datetime import timedelta

import pytest

from holdfast.domain.errors import ConflictError, InvalidRequestError, UnprocessableError
from holdfast.domain.idempotency import GateMode, IdempotencyRegistry

ENDPOINT = "POST /bookings/hold"
TTL = timedelta(minutes=45)


@pytest.fixture
def registry(store, clock):
    return IdempotencyRegistry(store, clock)


def _begin(registry, key="key-00001", payload=None, user_id="u1"):
    return registry.begin_or_reuse(
        user_id=user_id,
        endpoint=ENDPOINT,
        key=key,
        payload=payload if payload is not None else {"a": 1},
        ttl=TTL,
    )


class TestKeyValidation:
    @pytest.mark.parametrize("key", [None, "", "short", "1234567"])
    def test_missing_or_short_key(self, registry, key):
        with pytest.raises(InvalidRequestError, match="Idempotency-Key required"):
            _begin(registry, key=key)

    def test_eight_chars_accepted(self, registry):
        assert _begin(registry, key="12345678").mode == GateMode.PROCEED


class TestGate:
    def test_first_call_proceeds_with_token(self, registry, store, clock):
        gate = _begin(registry)
        assert gate.mode == GateMode.PROCEED
        assert gate.token
        row = store.state.idempotency[gate.token]
        assert row["status"] == "IN_PROGRESS"
        assert row["expires_at"] == clock.now() + TTL

    def test_second_call_while_in_flight(self, registry):
        _begin(registry)
        assert _begin(registry).mode == GateMode.IN_PROGRESS

    def test_completed_is_replayed_verbatim(self, registry):
        gate = _begin(registry)
        snapshot = {"id": "b1", "status": "HOLD", "fraud": {"level": "LOW"}}
        registry.complete_ok(gate.token, snapshot, resource_id="b1")

        replay = _begin(registry)
        assert replay.mode == GateMode.REUSE
        assert replay.response == snapshot
        assert replay.token is None

    def test_key_order_of_payload_is_irrelevant(self, registry):
        gate = _begin(registry, payload={"a": 1, "b": 2})
        registry.complete_ok(gate.token, {"ok": True})
        assert _begin(registry, payload={"b": 2, "a": 1}).mode == GateMode.REUSE

    def test_different_payload_is_unprocessable(self, registry):
        _begin(registry, payload={"a": 1})
        with pytest.raises(UnprocessableError):
            _begin(registry, payload={"a": 2})

    def test_failed_attempt_requires_new_key(self, registry):
        gate = _begin(registry)
        registry.complete_failed(gate.token, {"message": "Not available"})
        with pytest.raises(ConflictError, match="new Idempotency-Key"):
            _begin(registry)

    def test_scope_includes_user(self, registry):
        _begin(registry, user_id="u1")
        assert _begin(registry, user_id="u2").mode == GateMode.PROCEED

    def test_anonymous_scope_dedupes(self, registry):
        _begin(registry, user_id=None)
        assert _begin(registry, user_id=None).mode == GateMode.IN_PROGRESS

    def test_complete_is_once_only(self, registry, store):
        gate = _begin(registry)
        registry.complete_ok(gate.token, {"first": True})
        registry.complete_failed(gate.token, {"message": "late"})
        row = store.state.idempotency[gate.token]
        assert row["status"] == "COMPLETED"
        assert row["response"] == {"first": True}


class TestSweep:
    def test_sweep_deletes_only_expired(self, registry, store, clock):
        old = _begin(registry, key="old-key-1")
        clock.advance(minutes=30)
        fresh = _begin(registry, key="fresh-key")

        deleted = registry.sweep_expired(clock.now() + timedelta(minutes=20))

        assert deleted == 1
        assert old.token not in store.state.idempotency
        assert fresh.token in store.state.idempotency

    def test_swept_key_can_be_reused(self, registry, clock):
        gate = _begin(registry)
        registry.complete_failed(gate.token, {"message": "boom"})
        registry.sweep_expired(clock.now() + TTL + timedelta(seconds=1))
        assert _begin(registry).mode == GateMode.PROCEED
