"""
Ride state machine, driven by the assigned driver.

    driver_assigned -> started -> completed
    driver_assigned -> cancelled
    started -> cancelled

driver_assigned is only ever set by the match resolver. Transitions are
accepted regardless of the current status once ownership is checked, so a
driver may go straight from driver_assigned to completed.

The driver is released only when an active ride finishes. Restarting a
finished ride marks the driver busy again, unless another ride of theirs is
already active. A cancelled ride carries no final fare.
"""

import logging

from django.db import DatabaseError, IntegrityError, transaction
from django.utils import timezone

from drivers.models import DriverProfile
from rides.models import Ride
from .exceptions import (
    DispatchStoreError,
    DriverNotAvailableError,
    RideNotFoundError,
    RideValidationError,
)

logger = logging.getLogger(__name__)

ALLOWED_STATUS_UPDATES = (Ride.STARTED, Ride.COMPLETED, Ride.CANCELLED)


def update_ride_status(driver, ride_id: int, new_status: str, now=None) -> Ride:
    """
    Move the driver's ride to a new status.

    Args:
        driver: User model instance (driver)
        ride_id: ID of the ride
        new_status: One of started, completed, cancelled

    Returns:
        The updated Ride

    Raises:
        RideValidationError: If new_status is not an allowed target
        RideNotFoundError: If the ride does not exist or is assigned to another driver
        DriverNotAvailableError: If restarting the ride would give the driver two active rides
    """
    if new_status not in ALLOWED_STATUS_UPDATES:
        raise RideValidationError(f"Status must be one of: {', '.join(ALLOWED_STATUS_UPDATES)}")

    now = now or timezone.now()

    try:
        with transaction.atomic():
            ride = (
                Ride.objects.select_for_update()
                .select_related("request")
                .filter(pk=ride_id, driver=driver)
                .first()
            )
            if ride is None:
                raise RideNotFoundError("Ride not found or not yours")

            previous = ride.status
            ride.status = new_status

            # Only the markers of the current status survive a transition
            if new_status == Ride.STARTED:
                ride.started_at = now
                ride.completed_at = None
                ride.cancelled_at = None
                ride.final_fare = None
            elif new_status == Ride.COMPLETED:
                ride.completed_at = now
                ride.cancelled_at = None
                ride.final_fare = ride.request.estimated_fare
            else:
                ride.cancelled_at = now
                ride.completed_at = None
                ride.final_fare = None

            ride.save(update_fields=[
                "status", "started_at", "completed_at", "cancelled_at", "final_fare",
            ])

            if new_status == Ride.STARTED:
                DriverProfile.objects.filter(user=driver).update(status=DriverProfile.BUSY)
            elif previous in Ride.ACTIVE_STATUSES:
                # Finishing an already finished ride must not free a driver busy with another one
                DriverProfile.objects.filter(
                    user=driver, status=DriverProfile.BUSY
                ).update(status=DriverProfile.ONLINE)
    except IntegrityError:
        raise DriverNotAvailableError("Driver already has another active ride")
    except DatabaseError as exc:
        logger.exception("Updating ride %s to %s failed", ride_id, new_status)
        raise DispatchStoreError() from exc

    logger.info("Ride %s: %s -> %s by driver %s", ride.pk, previous, new_status, driver.pk)
    return ride
