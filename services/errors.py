class BookingError(Exception):
    """Base for every caller-visible reservation failure.

    ``context`` is merged into the JSON error body, so it must only carry
    values the caller already knows or is allowed to see.
    """

    status_code = 400
    code = "BOOKING_ERROR"

    def __init__(self, message: str, **context):
        super().__init__(message)
        self.message = message
        self.context = context

    def to_dict(self) -> dict:
        body = {"error": self.message, "code": self.code}
        body.update(self.context)
        return body


class ValidationError(BookingError):
    status_code = 400
    code = "VALIDATION_ERROR"


class Unauthorized(BookingError):
    status_code = 401
    code = "UNAUTHORIZED"


class Forbidden(BookingError):
    status_code = 403
    code = "FORBIDDEN"


class CsrfFailed(Forbidden):
    code = "CSRF_FAILED"


class CertificationRequired(BookingError):
    status_code = 403
    code = "CERTIFICATION_REQUIRED"


class NotFound(BookingError):
    status_code = 404
    code = "NOT_FOUND"


class ResourceUnavailable(BookingError):
    status_code = 409
    code = "RESOURCE_UNAVAILABLE"


class SlotConflict(BookingError):
    status_code = 409
    code = "SLOT_CONFLICT"


class InvalidStatus(BookingError):
    status_code = 400
    code = "INVALID_STATUS"
