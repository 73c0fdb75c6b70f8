"""Worker task endpoints for the periodic jobs.

Each endpoint runs one pass of a job on demand (external cron, operators)
under the same distributed lock the in-process scheduler takes. A pass that
finds the lock held returns ``{"ok": true, "skipped": true}``.
"""

from __future__ import annotations

from typing import Any, Callable

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse

from holdfast.api.deps import get_services
from holdfast.api.task_auth import verify_task_auth
from holdfast.observability.correlation import get_correlation_id
from holdfast.observability.logging import get_logger
from holdfast.observability.redaction import safe_log_context
from holdfast.wiring import Services

router = APIRouter(prefix="/tasks", tags=["tasks"])

logger = get_logger(__name__)


def _run_task(request: Request, name: str, fn: Callable[[], dict[str, Any] | None]) -> JSONResponse:
    correlation_id = get_correlation_id()

    if not verify_task_auth(request):
        raise HTTPException(status_code=401, detail="Unauthorized")

    try:
        result = fn()
    except Exception:
        logger.exception(
            "task failed",
            extra={"extra_fields": safe_log_context(correlationId=correlation_id, task=name)},
        )
        return JSONResponse(
            status_code=500,
            content={"ok": False, "error": "processing failed"},
        )

    if result is None:
        logger.info(
            "task skipped, lock held elsewhere",
            extra={"extra_fields": safe_log_context(correlationId=correlation_id, task=name)},
        )
        return JSONResponse(status_code=200, content={"ok": True, "skipped": True})

    logger.info(
        "task completed",
        extra={"extra_fields": safe_log_context(correlationId=correlation_id, task=name, **result)},
    )
    return JSONResponse(status_code=200, content={"ok": True, **result})


@router.post("/bookings/expire")
def expire_bookings(request: Request, services: Services = Depends(get_services)) -> JSONResponse:
    """Cancel every hold whose deadline passed and return its nights."""
    return _run_task(request, "expire-holds", services.expire_task.run_exclusive)


@router.post("/idempotency/sweep")
def sweep_idempotency(request: Request, services: Services = Depends(get_services)) -> JSONResponse:
    return _run_task(request, "idempotency-sweep", services.cleanup_task.run_exclusive)


@router.post("/outbox/publish")
def publish_outbox(request: Request, services: Services = Depends(get_services)) -> JSONResponse:
    """Drain one outbox batch. Concurrent publishers skip each other's rows."""
    return _run_task(request, "outbox-publish", services.publisher.run_exclusive)
