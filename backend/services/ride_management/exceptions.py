"""Custom exceptions for ride management and dispatch.

Every exception carries the HTTP status and machine-readable error code the
API layer reports, so callers can tell "fix your input" (400) from "not
found" (404) from "lost the race, try again" (409).
"""


class RideServiceError(Exception):
    """Base class for errors raised by the ride services."""
    status_code = 400
    error_code = "ride_error"
    default_message = "Ride operation failed"

    def __init__(self, message=None):
        super().__init__(message or self.default_message)
        self.message = message or self.default_message


class RideValidationError(RideServiceError):
    """Raised when input is missing or malformed; checked before any mutation."""
    status_code = 400
    error_code = "validation_error"
    default_message = "Invalid ride input"


class RideNotFoundError(RideServiceError):
    """Raised when a ride or request cannot be found or is not owned by the caller."""
    status_code = 404
    error_code = "not_found"
    default_message = "Ride not found"


class RideNotAvailableError(RideServiceError):
    """Raised when a ride is not in an available state for the operation."""
    status_code = 409
    error_code = "ride_not_available"
    default_message = "Ride request is no longer available"


class ActiveRideExistsError(RideServiceError):
    """Raised when user already has an active ride."""
    status_code = 409
    error_code = "active_ride_exists"
    default_message = "You already have an active ride request"


class DriverNotAvailableError(RideServiceError):
    """Raised when driver is not available for the operation."""
    status_code = 409
    error_code = "driver_not_available"
    default_message = "Driver is not available"


class DispatchStoreError(RideServiceError):
    """Raised when the database fails underneath a ride operation."""
    status_code = 500
    error_code = "store_error"
    default_message = "Ride operation could not be completed, please retry"
