"""Domain exceptions for the booking core.

Each class carries the HTTP status the API layer answers with, so routes can
translate any of them without a lookup table.
"""


class BookingError(Exception):
    """Base class for expected, caller-visible failures."""

    status_code = 400

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class InvalidRequestError(BookingError):
    """Bad input or an action not allowed in the current state."""

    status_code = 400


class NotAvailableError(InvalidRequestError):
    """Inventory missing, blocked, sold out, or lost to a concurrent hold."""

    pass


class ForbiddenError(BookingError):
    """Caller does not own the resource or lacks the role."""

    status_code = 403


class NotFoundError(BookingError):
    """Referenced booking, assessment or policy does not exist."""

    status_code = 404


class ConflictError(BookingError):
    """Concurrent or already-processed request; retry semantics differ."""

    status_code = 409


class UnprocessableError(BookingError):
    """Idempotency key reused with a different payload."""

    status_code = 422
