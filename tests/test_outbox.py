"""Tests for outbox emission and the publisher."""

from datetime import datetime, timezone

import pytest

from holdfast.domain.outbox import OutboxEmitter
from holdfast.jobs.outbox_publisher import LoggingProducer, OutboxPublisher, to_message
from holdfast.observability.correlation import reset_correlation_id, set_correlation_id

from fakes import FakeLock, RecordingProducer


class TestEmitter:
    def test_prefix_applied(self, store):
        emitter = OutboxEmitter(store, "prod.")
        event_id = emitter.emit("booking.held", {"booking_id": "b1"}, "booking.held:b1")

        row = store.state.outbox[event_id]
        assert row["topic"] == "prod.booking.held"
        assert row["event_key"] == "booking.held:b1"

    def test_correlation_id_recorded(self, store):
        token = set_correlation_id("req-123")
        try:
            event_id = OutboxEmitter(store).emit("booking.held", {})
        finally:
            reset_correlation_id(token)
        assert store.state.outbox[event_id]["correlation_id"] == "req-123"

    def test_rolls_back_with_caller(self, store):
        emitter = OutboxEmitter(store)
        with pytest.raises(RuntimeError):
            with store.transaction() as uow:
                emitter.emit_booking_event(uow, "booking.held", "b1")
                raise RuntimeError("boom")
        assert store.state.outbox == {}

    def test_booking_event_shape(self, store):
        emitter = OutboxEmitter(store)
        with store.transaction() as uow:
            event_id = emitter.emit_booking_event(uow, "booking.expired", "b9")
        row = store.state.outbox[event_id]
        assert row["event_key"] == "booking.expired:b9"
        assert row["payload"] == {"booking_id": "b9"}


class TestToMessage:
    def test_headers_and_value(self):
        row = {
            "id": 7,
            "topic": "booking.held",
            "event_key": "booking.held:b1",
            "payload": {"booking_id": "b1"},
            "correlation_id": "c-1",
            "created_at": datetime(2025, 11, 20, 3, 0, tzinfo=timezone.utc),
        }
        message = to_message(row)

        assert message["key"] == "booking.held:b1"
        assert message["headers"] == {
            "x-event-id": "7",
            "x-topic": "booking.held",
            "x-created-at": "2025-11-20T03:00:00+00:00",
            "x-schema-ver": "1",
            "x-correlation-id": "c-1",
        }
        assert message["value"]["v"] == 1
        assert message["value"]["payload"] == {"booking_id": "b1"}

    def test_no_correlation_header_when_absent(self):
        message = to_message({"id": 1, "topic": "t", "created_at": None})
        assert "x-correlation-id" not in message["headers"]
        assert message["value"]["payload"] == {}


class TestPublisher:
    def _emit(self, store, *topics):
        emitter = OutboxEmitter(store)
        for i, topic in enumerate(topics):
            emitter.emit(topic, {"booking_id": f"b{i}"}, f"{topic}:b{i}")

    def test_groups_by_topic_and_deletes(self, store, lock):
        producer = RecordingProducer()
        self._emit(store, "booking.held", "booking.expired", "booking.held")
        publisher = OutboxPublisher(store, producer, lock)

        assert publisher.tick() == {"published": 3}

        sent = dict(producer.sent)
        assert [m["key"] for m in sent["booking.held"]] == ["booking.held:b0", "booking.held:b2"]
        assert len(sent["booking.expired"]) == 1
        assert store.state.outbox == {}
        assert lock.held == set()

    def test_batch_size(self, store, lock):
        producer = RecordingProducer()
        self._emit(store, "a", "b", "c")
        publisher = OutboxPublisher(store, producer, lock, batch_size=2)

        assert publisher.execute() == {"published": 2}
        assert len(store.state.outbox) == 1
        assert publisher.execute() == {"published": 1}
        assert publisher.execute() == {"published": 0}

    def test_producer_failure_keeps_rows(self, store, lock):
        self._emit(store, "booking.held")
        publisher = OutboxPublisher(store, RecordingProducer(fail=True), lock)

        assert publisher.tick() is None
        assert len(store.state.outbox) == 1
        assert lock.released == ["job:outbox:publish"]

    def test_execute_propagates_failure(self, store, lock):
        self._emit(store, "booking.held")
        publisher = OutboxPublisher(store, RecordingProducer(fail=True), lock)

        with pytest.raises(ConnectionError):
            publisher.execute()
        assert len(store.state.outbox) == 1

    def test_skips_without_lock(self, store):
        self._emit(store, "booking.held")
        producer = RecordingProducer()
        publisher = OutboxPublisher(store, producer, FakeLock(available=False))

        assert publisher.tick() is None
        assert producer.sent == []
        assert len(store.state.outbox) == 1

    def test_logging_producer(self, monkeypatch):
        from unittest.mock import MagicMock

        from holdfast.jobs import outbox_publisher

        fake_logger = MagicMock()
        monkeypatch.setattr(outbox_publisher, "logger", fake_logger)
        message = to_message({"id": 1, "topic": "t", "event_key": "k", "created_at": None})

        LoggingProducer().send("t", [message])

        fake_logger.info.assert_called_once()
        assert fake_logger.info.call_args.kwargs["extra"]["extra_fields"]["event_key"] == "k"
