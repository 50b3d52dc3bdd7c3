"""
Services package - Business logic layer.

This package contains all business logic services that operate on Django models
but are decoupled from the HTTP layer.

Modules:
    - ride_management: Request lifecycle, ride state machine, rider phase
    - matching: Proximity search and atomic acceptance
"""

# Expose commonly used functions at package level
from .matching import (
    find_nearby_requests,
    reject_ride_request,
    accept_ride_request,
)
from .ride_management import (
    estimate_fare,
    create_ride_request,
    expire_ride_request,
    expire_stale_requests,
    cancel_ride_request,
    update_ride_status,
    get_active_phase,
    RideServiceError,
    RideValidationError,
    RideNotFoundError,
    RideNotAvailableError,
    ActiveRideExistsError,
    DriverNotAvailableError,
    DispatchStoreError,
)

__all__ = [
    # Matching
    "find_nearby_requests",
    "reject_ride_request",
    "accept_ride_request",
    # Ride management
    "estimate_fare",
    "create_ride_request",
    "expire_ride_request",
    "expire_stale_requests",
    "cancel_ride_request",
    "update_ride_status",
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
