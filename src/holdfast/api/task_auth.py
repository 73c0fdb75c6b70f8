"""Authentication for internal task endpoints (worker role).

The scheduler or an external cron calls the worker with the shared
``X-Internal-Task-Secret`` header.
"""

from __future__ import annotations

import hmac
import os

from fastapi import Request

from holdfast.observability.logging import get_logger
from holdfast.observability.redaction import safe_log_context

logger = get_logger(__name__)

TASK_SECRET_HEADER = "X-Internal-Task-Secret"


def verify_task_auth(request: Request) -> bool:
    """Check the internal task secret.

    Fail-closed: returns False when INTERNAL_TASK_SECRET is not configured.
    """
    expected = os.environ.get("INTERNAL_TASK_SECRET", "")
    if not expected:
        logger.error(
            "INTERNAL_TASK_SECRET not configured - fail closed",
            extra={"extra_fields": safe_log_context(reason="missing_secret_env")},
        )
        return False

    provided = request.headers.get(TASK_SECRET_HEADER, "")
    if not provided or not hmac.compare_digest(provided, expected):
        logger.warning(
            "task auth failed",
            extra={"extra_fields": safe_log_context(reason="bad_task_secret")},
        )
        return False
    return True
