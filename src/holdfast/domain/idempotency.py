"""Idempotency registry - request dedupe for money-moving endpoints.

A request is identified by its scope (user, endpoint, client key). The first
request claims the scope with an IN_PROGRESS row committed in its own short
transaction; retries then either replay the stored snapshot, wait on the
in-flight request, or are rejected. The claim never shares a transaction with
the business work it guards, so concurrent duplicates see it immediately.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any

from holdfast.domain.errors import ConflictError, InvalidRequestError, UnprocessableError
from holdfast.domain.ports import Store
from holdfast.infra.hashing import request_hash
from holdfast.infra.time import Clock, SystemClock
from holdfast.observability.logging import get_logger
from holdfast.observability.redaction import safe_log_context

logger = get_logger(__name__)

MIN_KEY_LENGTH = 8

STATUS_IN_PROGRESS = "IN_PROGRESS"
STATUS_COMPLETED = "COMPLETED"
STATUS_FAILED = "FAILED"


class GateMode(str, enum.Enum):
    PROCEED = "PROCEED"
    REUSE = "REUSE"
    IN_PROGRESS = "IN_PROGRESS"


@dataclass(frozen=True)
class IdempotencyGate:
    """Outcome of ``begin_or_reuse``.

    ``token`` is set only for PROCEED, ``response`` only for REUSE.
    """

    mode: GateMode
    token: str | None = None
    response: dict | None = None


class IdempotencyRegistry:
    def __init__(self, store: Store, clock: Clock | None = None) -> None:
        self._store = store
        self._clock = clock or SystemClock()

    def begin_or_reuse(
        self,
        *,
        user_id: str | None,
        endpoint: str,
        key: str | None,
        payload: Any,
        ttl: timedelta,
    ) -> IdempotencyGate:
        """Claim the scope or report what an earlier request left behind.

        Raises:
            InvalidRequestError: Key missing or shorter than 8 characters.
            UnprocessableError: Key already used with a different payload.
            ConflictError: Earlier attempt with this key failed.
        """
        if not key or not isinstance(key, str) or len(key) < MIN_KEY_LENGTH:
            raise InvalidRequestError("Idempotency-Key required")

        payload_hash = request_hash(payload)
        expires_at = self._clock.now() + ttl

        with self._store.transaction() as uow:
            record_id = uow.insert_idempotency(
                user_id=user_id,
                endpoint=endpoint,
                key=key,
                request_hash=payload_hash,
                expires_at=expires_at,
            )
        if record_id is not None:
            return IdempotencyGate(mode=GateMode.PROCEED, token=record_id)

        with self._store.transaction() as uow:
            existing = uow.get_idempotency(user_id=user_id, endpoint=endpoint, key=key)

        if existing is None:
            # Swept between the conflicting insert and this read.
            raise ConflictError("Idempotency record vanished; retry the request")

        if existing["request_hash"] != payload_hash:
            logger.warning(
                "idempotency key reused with different payload",
                extra={
                    "extra_fields": safe_log_context(
                        endpoint=endpoint, user_id=user_id, idempotency_key=key
                    )
                },
            )
            raise UnprocessableError("Idempotency-Key reused with different payload")

        status = existing["status"]
        if status == STATUS_COMPLETED:
            logger.info(
                "idempotent replay",
                extra={
                    "extra_fields": safe_log_context(
                        endpoint=endpoint,
                        resource_id=existing.get("resource_id"),
                        idempotency_key=key,
                    )
                },
            )
            return IdempotencyGate(mode=GateMode.REUSE, response=existing["response"])
        if status == STATUS_FAILED:
            raise ConflictError("Previous attempt failed; use a new Idempotency-Key")
        return IdempotencyGate(mode=GateMode.IN_PROGRESS)

    def complete_ok(self, token: str, response: dict, resource_id: str | None = None) -> None:
        with self._store.transaction() as uow:
            uow.complete_idempotency(
                token, status=STATUS_COMPLETED, response=response, resource_id=resource_id
            )

    def complete_failed(self, token: str, error: dict) -> None:
        with self._store.transaction() as uow:
            uow.complete_idempotency(token, status=STATUS_FAILED, error=error)

    def sweep_expired(self, now: datetime | None = None) -> int:
        """Delete registry rows whose ``expires_at`` is before ``now``."""
        with self._store.transaction() as uow:
            deleted = uow.delete_expired_idempotency(now or self._clock.now())
        if deleted:
            logger.info(
                "idempotency keys swept",
                extra={"extra_fields": safe_log_context(deleted=deleted)},
            )
        return deleted
