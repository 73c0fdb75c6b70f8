"""Deterministic hashing of request payloads and rollout buckets.

Idempotency compares payloads across retries that may arrive with keys in a
different order, so hashing goes through a canonical JSON form.
"""

import hashlib
import json
from typing import Any


def canonical_json(payload: Any) -> str:
    """Serialize ``payload`` with sorted keys and compact separators.

    Non-JSON values (datetimes, UUIDs) are rendered with ``str``.
    """
    return json.dumps(payload, sort_keys=True, separators=(",", ":"), default=str)


def sha256_hex(text: str) -> str:
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


def request_hash(payload: Any) -> str:
    """SHA-256 hex digest of the canonical form of ``payload``."""
    return sha256_hex(canonical_json(payload))


def bucket_of(value: str, buckets: int = 100) -> int:
    """Stable bucket in ``[0, buckets)`` from the first 4 bytes of SHA-256."""
    digest = hashlib.sha256(value.encode("utf-8")).digest()
    n = int.from_bytes(digest[:4], "big")
    return (n * buckets) >> 32
