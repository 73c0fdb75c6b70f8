"""Redis-backed distributed lock for periodic jobs.

``SET key token NX EX ttl`` takes the lock; release deletes the key only if it
still holds our token, so a lock that expired and was re-taken by another
worker is never removed by the late holder.
"""

from __future__ import annotations

import threading
import uuid

import redis

from holdfast.observability.logging import get_logger
from holdfast.observability.redaction import safe_log_context

logger = get_logger(__name__)

_RELEASE_SCRIPT = """
if redis.call("GET", KEYS[1]) == ARGV[1] then
  return redis.call("DEL", KEYS[1])
else
  return 0
end
"""


class RedisLock:
    def __init__(self, client: redis.Redis, prefix: str = "") -> None:
        self._client = client
        self._prefix = prefix
        self._release = client.register_script(_RELEASE_SCRIPT)
        self._tokens: dict[str, str] = {}
        self._guard = threading.Lock()

    @classmethod
    def from_url(cls, url: str, prefix: str = "") -> "RedisLock":
        return cls(redis.Redis.from_url(url, decode_responses=True), prefix)

    def _key(self, key: str) -> str:
        return f"{self._prefix}{key}"

    def acquire(self, key: str, ttl_seconds: int) -> bool:
        token = uuid.uuid4().hex
        acquired = self._client.set(self._key(key), token, nx=True, ex=ttl_seconds)
        if not acquired:
            return False
        with self._guard:
            self._tokens[key] = token
        return True

    def release(self, key: str) -> None:
        with self._guard:
            token = self._tokens.pop(key, None)
        if token is None:
            return
        try:
            self._release(keys=[self._key(key)], args=[token])
        except redis.RedisError:
            # The TTL frees the lock anyway.
            logger.warning(
                "lock release failed",
                extra={"extra_fields": safe_log_context(lock_key=key, lock_token=token)},
                exc_info=True,
            )
