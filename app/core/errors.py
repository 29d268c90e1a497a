"""Error kinds returned to clients.

Each error carries a stable ``kind`` for machine checks, the HTTP status it maps
to and a human-readable message. Store internals never go into ``message``.
"""


class BookingError(Exception):
    kind = "BookingError"
    status_code = 400
    default_message = "Request could not be processed"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_body(self) -> dict:
        return {"success": False, "kind": self.kind, "error": self.message}


class ValidationFailed(BookingError):
    """Base for input errors raised before any store access."""
    status_code = 400


class InvalidRequest(ValidationFailed):
    kind = "InvalidRequest"
    default_message = "Malformed request body"


class MissingField(ValidationFailed):
    kind = "MissingField"
    default_message = "All fields are required"


class InvalidEmail(ValidationFailed):
    kind = "InvalidEmail"
    default_message = "Invalid email format"


class UnderageOrInvalidDOB(ValidationFailed):
    kind = "UnderageOrInvalidDOB"
    default_message = "Please enter a valid date of birth. Guests must be at least 18 years old"


class InvalidGovtId(ValidationFailed):
    kind = "InvalidGovtId"
    default_message = "Invalid government ID"


class MissingRelationship(ValidationFailed):
    kind = "MissingRelationship"
    default_message = "Relationship type is required when more than one person is staying"


class GuestCountMismatch(ValidationFailed):
    kind = "GuestCountMismatch"
    default_message = "Number of additional guests does not match guest count"


class InvalidGuestIndex(ValidationFailed):
    kind = "InvalidGuestIndex"
    default_message = "Invalid guest index"


class InvalidDateRange(ValidationFailed):
    kind = "InvalidDateRange"
    default_message = "Invalid check-in/check-out dates"


class DateConflict(BookingError):
    kind = "DateConflict"
    status_code = 409
    default_message = "The selected dates overlap with an existing booking"


class UpdateConflict(BookingError):
    kind = "UpdateConflict"
    status_code = 409
    default_message = "Booking was modified concurrently, please retry"


class Unauthorized(BookingError):
    kind = "Unauthorized"
    status_code = 403
    default_message = "Unauthorized"


class NotFound(BookingError):
    kind = "NotFound"
    status_code = 404
    default_message = "Booking not found"


class StoreUnavailable(BookingError):
    kind = "StoreUnavailable"
    status_code = 500
    default_message = "Failed to process request, please try again later"
