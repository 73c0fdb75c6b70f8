"""Fraud review endpoints (admin only)."""

from __future__ import annotations

from typing import Literal
from uuid import UUID

from fastapi import APIRouter, Depends, Path, Query
from pydantic import BaseModel

from holdfast.api.auth import ROLE_ADMIN, CurrentUser, require_role
from holdfast.api.deps import get_services, http_error
from holdfast.domain.errors import BookingError
from holdfast.wiring import Services


class DecideRequest(BaseModel):
    decision: Literal["APPROVED", "REJECTED"]
    note: str | None = None


router = APIRouter(prefix="/admin/fraud", tags=["fraud"])


@router.get("/cases")
def list_cases(
    decision: Literal["PENDING", "APPROVED", "REJECTED", "AUTO_DECLINED"] = Query(default="PENDING"),
    offset: int = Query(default=0, ge=0),
    limit: int = Query(default=20, ge=1, le=100),
    user: CurrentUser = Depends(require_role(ROLE_ADMIN)),
    services: Services = Depends(get_services),
) -> dict:
    return services.fraud_review.list_cases(decision, offset, limit)


@router.get("/cases/{booking_id}")
def get_case(
    booking_id: UUID = Path(...),
    user: CurrentUser = Depends(require_role(ROLE_ADMIN)),
    services: Services = Depends(get_services),
) -> dict:
    try:
        return services.fraud_review.get_case(str(booking_id))
    except BookingError as exc:
        raise http_error(exc)


@router.post("/cases/{booking_id}/decide")
def decide_case(
    body: DecideRequest,
    booking_id: UUID = Path(...),
    user: CurrentUser = Depends(require_role(ROLE_ADMIN)),
    services: Services = Depends(get_services),
) -> dict:
    """Approve (back to HOLD) or reject (cancel, release nights) a case."""
    try:
        return services.fraud_review.decide(str(booking_id), user.id, body.decision, body.note)
    except BookingError as exc:
        raise http_error(exc)
