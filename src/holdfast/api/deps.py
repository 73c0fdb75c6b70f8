"""Shared FastAPI dependencies."""

from __future__ import annotations

import threading

from fastapi import HTTPException

from holdfast.domain.errors import BookingError
from holdfast.wiring import Services, build_services

_services: Services | None = None
_services_lock = threading.Lock()


def get_services() -> Services:
    """Process-wide service graph (override in tests via dependency_overrides)."""
    global _services

    with _services_lock:
        if _services is None:
            _services = build_services()
        return _services


def http_error(exc: BookingError) -> HTTPException:
    return HTTPException(status_code=exc.status_code, detail=exc.message)
