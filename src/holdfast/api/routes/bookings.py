"""Customer booking endpoints: hold, read, cancel, cancel policy, refund preview."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from fastapi import APIRouter, Depends, Header, Path, Query
from pydantic import BaseModel

from holdfast.api.auth import ROLE_ADMIN, ROLE_HOST, CurrentUser, get_current_user, require_role
from holdfast.api.deps import get_services, http_error
from holdfast.domain.errors import BookingError
from holdfast.observability.correlation import get_correlation_id
from holdfast.observability.logging import get_logger
from holdfast.observability.redaction import safe_log_context
from holdfast.wiring import Services


class HoldRequest(BaseModel):
    """Request body for POST /bookings/hold."""

    property_id: str
    check_in: str
    check_out: str


class AttachCancelPolicyRequest(BaseModel):
    cancel_policy_id: str


router = APIRouter(prefix="/bookings", tags=["bookings"])

logger = get_logger(__name__)


@router.post("/hold")
def create_hold(
    body: HoldRequest,
    idempotency_key: str | None = Header(default=None, alias="Idempotency-Key"),
    user: CurrentUser = Depends(get_current_user),
    services: Services = Depends(get_services),
) -> dict:
    """Place a hold on every night of ``[check_in, check_out)``.

    Requires an Idempotency-Key header; a retry with the same key and body
    returns the original response.
    """
    try:
        return services.bookings.hold(
            user.id,
            body.property_id,
            body.check_in,
            body.check_out,
            idempotency_key,
        )
    except BookingError as exc:
        logger.info(
            "hold rejected",
            extra={
                "extra_fields": safe_log_context(
                    correlationId=get_correlation_id(),
                    property_id=body.property_id,
                    status_code=exc.status_code,
                    reason=exc.message,
                )
            },
        )
        raise http_error(exc)


@router.get("/{booking_id}")
def read_booking(
    booking_id: UUID = Path(...),
    user: CurrentUser = Depends(get_current_user),
    services: Services = Depends(get_services),
) -> dict:
    try:
        return services.bookings.get_booking(user.id, str(booking_id))
    except BookingError as exc:
        raise http_error(exc)


@router.post("/{booking_id}/cancel")
def cancel_booking(
    booking_id: UUID = Path(...),
    user: CurrentUser = Depends(get_current_user),
    services: Services = Depends(get_services),
) -> dict:
    """Cancel an unpaid hold (HOLD or REVIEW) and return its nights."""
    try:
        return services.bookings.cancel_hold(user.id, str(booking_id))
    except BookingError as exc:
        raise http_error(exc)


@router.post("/{booking_id}/cancel-policy")
def attach_cancel_policy(
    body: AttachCancelPolicyRequest,
    booking_id: UUID = Path(...),
    user: CurrentUser = Depends(require_role(ROLE_HOST, ROLE_ADMIN)),
    services: Services = Depends(get_services),
) -> dict:
    try:
        return services.cancel_policies.attach_cancel_policy(
            str(booking_id), body.cancel_policy_id
        )
    except BookingError as exc:
        raise http_error(exc)


@router.get("/{booking_id}/refund-preview")
def refund_preview(
    booking_id: UUID = Path(...),
    cancel_at: datetime | None = Query(default=None),
    user: CurrentUser = Depends(get_current_user),
    services: Services = Depends(get_services),
) -> dict:
    """Refund the caller would get if the booking were cancelled at ``cancel_at``."""
    try:
        if not user.has_any_role(ROLE_ADMIN):
            services.bookings.get_booking(user.id, str(booking_id))
        return services.cancel_policies.preview_refund(str(booking_id), cancel_at)
    except BookingError as exc:
        raise http_error(exc)
