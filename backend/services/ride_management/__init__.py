"""
Ride management service - Core ride lifecycle operations.

This module handles:
    - Fare estimates and creating ride requests
    - Lazy expiry and rider cancellation of requests
    - Driver-driven ride status transitions
    - The rider polling phase
"""

from .ride_lifecycle import (
    FareEstimate,
    estimate_fare,
    create_ride_request,
    expire_ride_request,
    expire_stale_requests,
    cancel_ride_request,
    check_active_ride,
)
from .ride_state import update_ride_status
from .active_phase import ActivePhase, get_active_phase

from .exceptions import (
    RideServiceError,
    RideValidationError,
    RideNotFoundError,
    RideNotAvailableError,
    ActiveRideExistsError,
    DriverNotAvailableError,
    DispatchStoreError,
)

__all__ = [
    # Lifecycle operations
    "FareEstimate",
    "estimate_fare",
    "create_ride_request",
    "expire_ride_request",
    "expire_stale_requests",
    "cancel_ride_request",
    "check_active_ride",
    "update_ride_status",
    "ActivePhase",
    "get_active_phase",
    # Exceptions
    "RideServiceError",
    "RideValidationError",
    "RideNotFoundError",
    "RideNotAvailableError",
    "ActiveRideExistsError",
    "DriverNotAvailableError",
    "DispatchStoreError",
]
