"""
Atomic match resolution for ride requests.

Any number of drivers may call accept_ride_request() on the same request at
the same time; exactly one wins. The protocol is lock-if-open, mutate,
commit:

    1. SELECT ... FOR UPDATE the request row filtered by status=open. Other
       accepting transactions block on the same row until this one ends.
    2. No row -> the request was matched, expired or cancelled: conflict.
    3. Record the driver's response, flip open -> matched, create the Ride,
       mark the driver busy, commit.

All writes share one transaction, so a matched request never exists without
its Ride and a busy driver never exists without an active Ride. On databases
without row locks the guarded UPDATE (status=open) and the unique constraint
on Ride.request still let only one writer through.
"""

import logging

from django.db import DatabaseError, IntegrityError, transaction
from django.utils import timezone

from drivers.models import DriverProfile
from rides.models import DriverResponse, Ride, RideRequest
from services.ride_management.exceptions import (
    DispatchStoreError,
    DriverNotAvailableError,
    RideNotAvailableError,
    RideNotFoundError,
)

logger = logging.getLogger(__name__)

NO_LONGER_AVAILABLE = "Ride request is no longer available"


def _lock_open_request(request_id: int) -> RideRequest:
    ride_request = (
        RideRequest.objects.select_for_update()
        .filter(pk=request_id, status=RideRequest.OPEN)
        .first()
    )
    if ride_request is None:
        if not RideRequest.objects.filter(pk=request_id).exists():
            raise RideNotFoundError("Request not found")
        raise RideNotAvailableError(NO_LONGER_AVAILABLE)
    return ride_request


def _lock_available_driver(driver) -> DriverProfile:
    try:
        profile = DriverProfile.objects.select_for_update().get(user=driver)
    except DriverProfile.DoesNotExist:
        raise RideNotFoundError("Driver profile not found")

    if profile.status == DriverProfile.BUSY:
        raise DriverNotAvailableError("Finish your current ride before accepting another")
    return profile


def _match(driver, ride_request: RideRequest, profile: DriverProfile, now) -> Ride:
    DriverResponse.objects.update_or_create(
        request=ride_request,
        driver=driver,
        defaults={"response_status": DriverResponse.ACCEPTED, "response_time": now},
    )

    updated = RideRequest.objects.filter(
        pk=ride_request.pk, status=RideRequest.OPEN
    ).update(status=RideRequest.MATCHED, matched_at=now)
    if updated != 1:
        raise RideNotAvailableError(NO_LONGER_AVAILABLE)
    ride_request.status = RideRequest.MATCHED
    ride_request.matched_at = now

    ride = Ride.objects.create(
        request=ride_request,
        rider_id=ride_request.rider_id,
        driver=driver,
        pickup_latitude=ride_request.pickup_latitude,
        pickup_longitude=ride_request.pickup_longitude,
        pickup_address=ride_request.pickup_address,
        dropoff_latitude=ride_request.dropoff_latitude,
        dropoff_longitude=ride_request.dropoff_longitude,
        dropoff_address=ride_request.dropoff_address,
        status=Ride.DRIVER_ASSIGNED,
        assigned_at=now,
    )

    profile.status = DriverProfile.BUSY
    profile.save(update_fields=["status"])
    return ride


def accept_ride_request(driver, request_id: int, now=None) -> Ride:
    """
    Accept an open ride request on behalf of a driver.

    Args:
        driver: User model instance (driver)
        request_id: ID of the ride request to accept

    Returns:
        The created Ride (status=driver_assigned)

    Raises:
        RideNotFoundError: If the request or the driver profile does not exist
        RideNotAvailableError: If another driver won, or the request expired or was cancelled
        DriverNotAvailableError: If the driver already has an active ride
        DispatchStoreError: If the database failed; nothing was persisted
    """
    now = now or timezone.now()
    expired = False

    try:
        with transaction.atomic():
            ride_request = _lock_open_request(request_id)

            if ride_request.is_past_expiry(now):
                # Commit the expiry, report the conflict after the block
                ride_request.status = RideRequest.EXPIRED
                ride_request.save(update_fields=["status"])
                expired = True
            else:
                profile = _lock_available_driver(driver)
                ride = _match(driver, ride_request, profile, now)
    except IntegrityError:
        logger.info("Driver %s lost the accept race for request %s (constraint)", driver.pk, request_id)
        raise RideNotAvailableError(NO_LONGER_AVAILABLE)
    except RideNotAvailableError:
        logger.info("Driver %s lost the accept race for request %s", driver.pk, request_id)
        raise
    except DatabaseError as exc:
        logger.exception("Accepting request %s for driver %s failed", request_id, driver.pk)
        raise DispatchStoreError() from exc

    if expired:
        logger.info("Ride request %s expired before driver %s could accept", request_id, driver.pk)
        raise RideNotAvailableError("Ride request has expired")

    logger.info(
        "Driver %s matched to ride request %s, ride %s created",
        driver.pk, request_id, ride.pk,
    )
    return ride
