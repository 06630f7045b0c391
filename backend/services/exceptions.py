"""Custom exceptions for ride and booking management.

Each error carries the failure kind the REST layer renders, a user-facing
message, and the form field it concerns.
"""

NOT_FOUND = "not_found"
PRECONDITION_FAILED = "precondition_failed"
INVALID_ARGUMENT = "invalid_argument"
TRANSIENT = "transient"


class LifecycleError(Exception):
    """Base class for expected business-rule failures."""
    error_kind = PRECONDITION_FAILED
    field = "form"
    detail = "Request failed"

    def __init__(self, message: str, field: str = None, detail: str = None):
        super().__init__(message)
        self.message = message
        if field is not None:
            self.field = field
        if detail is not None:
            self.detail = detail

    @property
    def errors(self):
        return {self.field: self.detail}


# ---------------------- Not found ----------------------

class RideNotFoundError(LifecycleError):
    """Raised when a ride cannot be found."""
    error_kind = NOT_FOUND
    field = "ride"
    detail = "Invalid ride ID"


class BookingNotFoundError(LifecycleError):
    """Raised when a booking cannot be found."""
    error_kind = NOT_FOUND
    field = "booking"
    detail = "Invalid booking ID"


class DisputeNotFoundError(LifecycleError):
    """Raised when a dispute cannot be found."""
    error_kind = NOT_FOUND
    field = "dispute"
    detail = "Invalid dispute ID"


# ---------------------- Preconditions ----------------------

class NotAuthorizedError(LifecycleError):
    """Raised when the caller has no role in the ride or booking."""
    field = "auth"
    detail = "Unauthorized"


class DriverNotVerifiedError(LifecycleError):
    """Raised when an unverified student tries to post a ride."""
    field = "auth"
    detail = "Student verification required"


class OwnRideBookingError(LifecycleError):
    """Raised when a driver tries to book their own ride."""
    field = "user"
    detail = "Cannot book own ride"


class RideNotAvailableError(LifecycleError):
    """Raised when a ride is not open for booking."""
    field = "status"
    detail = "Ride not open"


class InsufficientSeatsError(LifecycleError):
    """Raised when fewer seats remain than were requested."""
    field = "seats"
    detail = "Not enough seats available"


class ActiveBookingExistsError(LifecycleError):
    """Raised when the rider already holds an active booking on the ride."""
    field = "booking"
    detail = "Duplicate booking"


class InvalidTransitionError(LifecycleError):
    """Raised when a booking is not in a state that allows the operation."""
    field = "status"
    detail = "Invalid state transition"


class TripCodeInvalidError(LifecycleError):
    """Raised when the supplied trip-start code does not match."""
    field = "otp"
    detail = "Invalid code"


class TripCodeExpiredError(LifecycleError):
    """Raised when the trip-start code has expired."""
    field = "otp"
    detail = "Code expired"


class NoActiveBookingsError(LifecycleError):
    """Raised when completing a ride with no in-progress bookings."""
    field = "bookings"
    detail = "No in-progress bookings"


class DisputeAlreadyOpenError(LifecycleError):
    """Raised when a booking already has an open dispute."""
    field = "dispute"
    detail = "Duplicate dispute"


class DisputeAlreadyResolvedError(LifecycleError):
    """Raised when resolving a dispute that is no longer open."""
    field = "status"
    detail = "Dispute not open"


class FieldValidationError(LifecycleError):
    """Raised for field-level input problems (e.g. a reason that is too short)."""
    error_kind = INVALID_ARGUMENT

    def __init__(self, message: str, errors: dict):
        first_field, first_detail = next(iter(errors.items()))
        super().__init__(message, field=first_field, detail=first_detail)
        self._errors = dict(errors)

    @property
    def errors(self):
        return dict(self._errors)
