"""Redaction helpers for safe logging.

Booking logs carry user ids, idempotency keys and amounts. Keys are masked
(a leaked key lets someone replay a snapshot), free text is scrubbed of
emails and phone numbers, and structured values are reduced to their shape.
"""

import re
from typing import Any

_PHONE_PATTERN = re.compile(r"\+?\d[\d\s\-()]{8,}\d")
_EMAIL_PATTERN = re.compile(r"[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}")

_REDACTED = "[REDACTED]"

# Context keys whose values are secrets-by-replay and get masked.
_MASKED_KEYS = frozenset({"idempotency_key", "token", "lock_token"})


def redact_string(value: str) -> str:
    result = _PHONE_PATTERN.sub(_REDACTED, value)
    result = _EMAIL_PATTERN.sub(_REDACTED, result)
    return result


def mask_key(value: str | None, visible: int = 4) -> str:
    """Keep the first ``visible`` chars of a key, mask the rest."""
    if not value:
        return "null"
    if len(value) <= visible:
        return "*" * len(value)
    return value[:visible] + "*" * (len(value) - visible)


def redact_value(value: Any) -> str:
    """Redact any value for safe logging. Returns string representation."""
    if value is None:
        return "null"
    if isinstance(value, bool):
        return str(value).lower()
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, str):
        return redact_string(value)
    if isinstance(value, dict):
        return f"dict(keys={sorted(value.keys())})"
    if isinstance(value, (list, tuple)):
        return f"list(len={len(value)})"
    return f"<{type(value).__name__}>"


def safe_log_context(**kwargs: Any) -> dict[str, str]:
    """Build a context dict safe for logging. All values are redacted."""
    ctx: dict[str, str] = {}
    for k, v in kwargs.items():
        if k in _MASKED_KEYS:
            ctx[k] = mask_key(v if isinstance(v, str) else None)
        else:
            ctx[k] = redact_value(v)
    return ctx
