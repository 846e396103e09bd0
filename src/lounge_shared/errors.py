"""
Controlled errors of the floor engine and their catalogue.

The catalogue holds the user-facing message for each code; HTTP handlers and
staff tools show `user_message` rather than the internal exception text.
"""

from __future__ import annotations

from http import HTTPStatus

ERROR_CATALOG = {
    "FLOOR_404": {
        "title": "Not Found",
        "description": "A referenced table, reservation or order does not exist.",
        "http_code": HTTPStatus.NOT_FOUND,
        "user_message": "The requested item could not be found.",
    },
    "FLOOR_409": {
        "title": "Slot Taken",
        "description": "The table was booked by someone else between the check and the write.",
        "http_code": HTTPStatus.CONFLICT,
        "user_message": "Table no longer available, please choose another.",
    },
    "FLOOR_409_LIMIT": {
        "title": "Reservation Limit",
        "description": "The user already holds the maximum number of open reservations.",
        "http_code": HTTPStatus.CONFLICT,
        "user_message": (
            "You can hold at most 2 active reservations. "
            "Please cancel one or wait until one is completed."
        ),
    },
    "FLOOR_409_STATE": {
        "title": "Invalid Transition",
        "description": "The requested status change is not allowed from the current status.",
        "http_code": HTTPStatus.CONFLICT,
        "user_message": "This status change is not allowed.",
    },
    "FLOOR_409_CANCEL": {
        "title": "Cancellation Window Closed",
        "description": "Customers may only cancel more than 2 hours before the start.",
        "http_code": HTTPStatus.CONFLICT,
        "user_message": "Reservations can only be cancelled up to 2 hours before they start.",
    },
    "FLOOR_422": {
        "title": "Consistency Mismatch",
        "description": "Order details do not match the linked reservation (advisory only).",
        "http_code": HTTPStatus.UNPROCESSABLE_ENTITY,
        "user_message": "Order details do not match the reservation.",
    },
    "FLOOR_502": {
        "title": "Store Failure",
        "description": "The document store rejected or failed a read/write.",
        "http_code": HTTPStatus.BAD_GATEWAY,
        "user_message": "Something went wrong, please try again.",
    },
    "FLOOR_503": {
        "title": "Availability Unknown",
        "description": "The conflict check could not complete; treated as unavailable.",
        "http_code": HTTPStatus.SERVICE_UNAVAILABLE,
        "user_message": "Availability could not be confirmed, please try again.",
    },
}


class FloorError(Exception):
    """Base class for controlled floor errors."""

    code = "FLOOR_502"

    def __init__(self, message: str | None = None):
        super().__init__(message or self.user_message)

    @property
    def http_status(self) -> HTTPStatus:
        return ERROR_CATALOG[self.code]["http_code"]

    @property
    def user_message(self) -> str:
        return ERROR_CATALOG[self.code]["user_message"]


class NotFoundError(FloorError):
    code = "FLOOR_404"


class ConflictError(FloorError):
    code = "FLOOR_409"


class ReservationLimitError(ConflictError):
    code = "FLOOR_409_LIMIT"


class UnavailableError(FloorError):
    code = "FLOOR_503"


class UpstreamFailure(FloorError):
    code = "FLOOR_502"


class ValidationMismatch(FloorError):
    """Order/reservation consistency failure. Logged, never raised to callers."""

    code = "FLOOR_422"

    def __init__(self, field: str, order_value, reservation_value):
        super().__init__(f"{field} mismatch: {order_value!r} vs {reservation_value!r}")
        self.field = field
        self.order_value = order_value
        self.reservation_value = reservation_value


class ReservationStateError(FloorError):
    """Error raised when a reservation transition is invalid."""

    code = "FLOOR_409_STATE"

    def __init__(self, message: str, current_status=None, target_status=None):
        super().__init__(message)
        self.current_status = current_status
        self.target_status = target_status


class CancellationWindowError(ReservationStateError):
    code = "FLOOR_409_CANCEL"


class OrderStateError(FloorError):
    """Error raised when an order transition is invalid."""

    code = "FLOOR_409_STATE"

    def __init__(self, message: str, current_status=None, target_status=None):
        super().__init__(message)
        self.current_status = current_status
        self.target_status = target_status
