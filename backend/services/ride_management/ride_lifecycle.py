"""
Ride request lifecycle operations.

This module contains the rider-side business logic:
    - Fare/distance/duration estimates (single source of the fare formula)
    - Creating ride requests
    - Lazy expiry of stale open requests
    - Rider cancellation of open requests

Expiry is applied when requests are read, and optionally by the periodic
sweep in rides/tasks.py; there is no per-request timer.
"""

import logging
from dataclasses import dataclass
from datetime import timedelta
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Optional, Tuple, Union

from django.contrib.auth import get_user_model
from django.db import transaction
from django.utils import timezone

from common.utils import calculate_distance, dispatch_setting, encode_geohash
from rides.models import Ride, RideRequest
from .exceptions import (
    ActiveRideExistsError,
    RideNotAvailableError,
    RideNotFoundError,
    RideValidationError,
)

logger = logging.getLogger(__name__)

COORDINATE_QUANT = Decimal("0.000001")
KM_QUANT = Decimal("0.01")


@dataclass(frozen=True)
class FareEstimate:
    """Straight-line trip estimate shared by previews and created requests."""
    distance_km: Decimal
    estimated_fare: int
    estimated_duration_min: int


# ===================== Validation =====================

def _coordinate(value, field: str, limit: int) -> Decimal:
    if value is None or value == "":
        raise RideValidationError(f"{field} is required")
    try:
        number = Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise RideValidationError(f"{field} must be a number")
    if not number.is_finite() or abs(number) > limit:
        raise RideValidationError(f"{field} must be between -{limit} and {limit}")
    return number.quantize(COORDINATE_QUANT, rounding=ROUND_HALF_UP)


def validate_point(latitude, longitude, label: str) -> Tuple[Decimal, Decimal]:
    """Return the point as quantized Decimals or raise RideValidationError."""
    return (
        _coordinate(latitude, f"{label}_latitude", 90),
        _coordinate(longitude, f"{label}_longitude", 180),
    )


def _address(value, field: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise RideValidationError(f"{field} is required")
    return value.strip()


def _round_half_up(value: Decimal) -> int:
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


# ===================== Estimates =====================

def estimate_fare(
    pickup_latitude: Union[float, Decimal, str],
    pickup_longitude: Union[float, Decimal, str],
    dropoff_latitude: Union[float, Decimal, str],
    dropoff_longitude: Union[float, Decimal, str],
) -> FareEstimate:
    """
    Estimate fare, distance and duration for a trip.

    fare = base + km * per_km, duration = km * minutes_per_km, both rounded
    half-up to integers; km is the great-circle distance rounded to 2 places.

    Raises:
        RideValidationError: If any coordinate is missing or out of range
    """
    pickup = validate_point(pickup_latitude, pickup_longitude, "pickup")
    dropoff = validate_point(dropoff_latitude, dropoff_longitude, "dropoff")

    meters = calculate_distance(pickup[0], pickup[1], dropoff[0], dropoff[1])
    distance_km = (Decimal(str(meters)) / 1000).quantize(KM_QUANT, rounding=ROUND_HALF_UP)

    base_fare = Decimal(str(dispatch_setting("BASE_FARE")))
    per_km = Decimal(str(dispatch_setting("PER_KM_FARE")))
    minutes_per_km = Decimal(str(dispatch_setting("MINUTES_PER_KM")))

    return FareEstimate(
        distance_km=distance_km,
        estimated_fare=_round_half_up(base_fare + distance_km * per_km),
        estimated_duration_min=_round_half_up(distance_km * minutes_per_km),
    )


# ===================== Expiry =====================

def expire_ride_request(ride_request: RideRequest, now=None) -> bool:
    """
    Move an open request past its expiry to expired.

    Conditional on status=open and expires_at <= now, so redundant calls are
    no-ops. Returns True if this call performed the transition.
    """
    now = now or timezone.now()
    updated = RideRequest.objects.filter(
        pk=ride_request.pk,
        status=RideRequest.OPEN,
        expires_at__lte=now,
    ).update(status=RideRequest.EXPIRED)

    if updated:
        ride_request.status = RideRequest.EXPIRED
        logger.info("Ride request %s expired", ride_request.pk)
    return bool(updated)


def expire_stale_requests(now=None, rider=None) -> int:
    """Expire every open request past its expiry, optionally for one rider."""
    now = now or timezone.now()
    stale = RideRequest.objects.filter(status=RideRequest.OPEN, expires_at__lte=now)
    if rider is not None:
        stale = stale.filter(rider=rider)

    expired_count = stale.update(status=RideRequest.EXPIRED)
    if expired_count:
        logger.info("Expired %d stale ride request(s)", expired_count)
    return expired_count


# ===================== Rider Operations =====================

def check_active_ride(user, now=None) -> Optional[Union[RideRequest, Ride]]:
    """Return the rider's open request or unfinished ride, if any."""
    expire_stale_requests(now=now, rider=user)

    open_request = RideRequest.objects.filter(rider=user, status=RideRequest.OPEN).first()
    if open_request:
        return open_request
    return Ride.objects.filter(rider=user, status__in=Ride.ACTIVE_STATUSES).first()


def create_ride_request(
    rider,
    pickup_latitude,
    pickup_longitude,
    dropoff_latitude,
    dropoff_longitude,
    pickup_address: str,
    dropoff_address: str,
    now=None,
) -> RideRequest:
    """
    Create a new open ride request.

    Args:
        rider: User model instance (rider)
        pickup_latitude, pickup_longitude: Pickup point
        dropoff_latitude, dropoff_longitude: Dropoff point
        pickup_address: Human-readable pickup address
        dropoff_address: Human-readable dropoff address

    Returns:
        The created RideRequest (status=open)

    Raises:
        RideValidationError: If a point or address is missing or malformed
        ActiveRideExistsError: If the rider already has an open request or active ride
    """
    pickup = validate_point(pickup_latitude, pickup_longitude, "pickup")
    dropoff = validate_point(dropoff_latitude, dropoff_longitude, "dropoff")
    pickup_address = _address(pickup_address, "pickup_address")
    dropoff_address = _address(dropoff_address, "dropoff_address")

    estimate = estimate_fare(pickup[0], pickup[1], dropoff[0], dropoff[1])
    now = now or timezone.now()
    ttl = timedelta(seconds=dispatch_setting("REQUEST_TTL_SECONDS"))

    with transaction.atomic():
        # Lock the rider row so concurrent creates by one rider run in turn
        get_user_model().objects.select_for_update().filter(pk=rider.pk).first()

        if check_active_ride(rider, now=now):
            raise ActiveRideExistsError()

        ride_request = RideRequest.objects.create(
            rider=rider,
            pickup_latitude=pickup[0],
            pickup_longitude=pickup[1],
            pickup_address=pickup_address,
            pickup_geohash=encode_geohash(
                pickup[0], pickup[1], dispatch_setting("PICKUP_GEOHASH_PRECISION")
            ),
            dropoff_latitude=dropoff[0],
            dropoff_longitude=dropoff[1],
            dropoff_address=dropoff_address,
            status=RideRequest.OPEN,
            estimated_fare=estimate.estimated_fare,
            estimated_distance_km=estimate.distance_km,
            estimated_duration_min=estimate.estimated_duration_min,
            created_at=now,
            expires_at=now + ttl,
        )

    logger.info(
        "Rider %s created ride request %s (%s km, fare %s)",
        rider.pk, ride_request.pk, estimate.distance_km, estimate.estimated_fare,
    )
    return ride_request


def cancel_ride_request(rider, request_id: int, now=None) -> RideRequest:
    """
    Cancel the rider's own request while it is still open.

    Raises:
        RideNotFoundError: If the request does not exist or belongs to someone else
        RideNotAvailableError: If the request is no longer open
    """
    now = now or timezone.now()
    try:
        ride_request = RideRequest.objects.get(id=request_id, rider=rider)
    except RideRequest.DoesNotExist:
        raise RideNotFoundError("Request not found")

    if expire_ride_request(ride_request, now=now):
        raise RideNotAvailableError("Cannot cancel - request already expired")

    updated = RideRequest.objects.filter(
        pk=ride_request.pk, status=RideRequest.OPEN
    ).update(status=RideRequest.CANCELLED, cancelled_at=now)

    if not updated:
        ride_request.refresh_from_db(fields=["status"])
        raise RideNotAvailableError(f"Cannot cancel - request is already {ride_request.status}")

    ride_request.status = RideRequest.CANCELLED
    ride_request.cancelled_at = now
    logger.info("Rider %s cancelled ride request %s", rider.pk, ride_request.pk)
    return ride_request
