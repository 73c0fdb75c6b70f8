"""Tests for canonical request hashing and rollout buckets."""

from datetime import datetime, timezone

from holdfast.infra.hashing import bucket_of, canonical_json, request_hash, sha256_hex


class TestCanonicalJson:
    def test_sorted_and_compact(self):
        assert canonical_json({"b": 1, "a": [1, 2]}) == '{"a":[1,2],"b":1}'

    def test_datetime_rendered_as_str(self):
        moment = datetime(2025, 12, 1, tzinfo=timezone.utc)
        assert canonical_json({"at": moment}) == '{"at":"2025-12-01 00:00:00+00:00"}'


class TestRequestHash:
    def test_key_order_does_not_matter(self):
        assert request_hash({"a": 1, "b": 2}) == request_hash({"b": 2, "a": 1})

    def test_different_payloads_differ(self):
        assert request_hash({"a": 1}) != request_hash({"a": 2})

    def test_is_sha256_hex(self):
        digest = request_hash({"a": 1})
        assert len(digest) == 64
        assert digest == sha256_hex('{"a":1}')


class TestBucketOf:
    def test_deterministic(self):
        assert bucket_of("fraud_check:user-1") == bucket_of("fraud_check:user-1")

    def test_in_range(self):
        for i in range(200):
            assert 0 <= bucket_of(f"salt:user-{i}") < 100

    def test_roughly_uniform(self):
        buckets = [bucket_of(f"salt:user-{i}") for i in range(2000)]
        below_half = sum(1 for b in buckets if b < 50)
        assert 800 < below_half < 1200
