"""Host calendar endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Path, Query
from pydantic import BaseModel, Field

from holdfast.api.auth import ROLE_ADMIN, ROLE_HOST, CurrentUser, require_role
from holdfast.api.deps import get_services, http_error
from holdfast.domain.errors import BookingError
from holdfast.wiring import Services


class CalendarDay(BaseModel):
    date: str
    price: int | None = Field(default=None, ge=0)
    remaining: int | None = Field(default=None, ge=0)
    is_blocked: bool | None = None


class UpsertCalendarRequest(BaseModel):
    items: list[CalendarDay]


router = APIRouter(prefix="/properties", tags=["availability"])


@router.put("/{property_id}/availability")
def upsert_availability(
    body: UpsertCalendarRequest,
    property_id: str = Path(..., min_length=1),
    user: CurrentUser = Depends(require_role(ROLE_HOST, ROLE_ADMIN)),
    services: Services = Depends(get_services),
) -> dict:
    try:
        return services.availability.upsert_days(
            property_id, [item.model_dump() for item in body.items]
        )
    except BookingError as exc:
        raise http_error(exc)


@router.get("/{property_id}/availability")
def get_availability(
    property_id: str = Path(..., min_length=1),
    from_: str | None = Query(default=None, alias="from"),
    to: str | None = Query(default=None),
    user: CurrentUser = Depends(require_role(ROLE_HOST, ROLE_ADMIN)),
    services: Services = Depends(get_services),
) -> dict:
    """Calendar in ``[from, to)``; defaults to the next 60 days."""
    try:
        return services.availability.list_days(property_id, from_, to)
    except BookingError as exc:
        raise http_error(exc)
