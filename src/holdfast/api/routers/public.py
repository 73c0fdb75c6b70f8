"""Public-facing routes (APP_ROLE=public)."""

from fastapi import APIRouter

from holdfast.api.routes import availability, bookings, fraud

router = APIRouter()


@router.get("/health")
def health() -> dict:
    """Health check endpoint."""
    return {"status": "ok"}


router.include_router(bookings.router)
router.include_router(availability.router)
router.include_router(fraud.router)
