import logging

from django.db import transaction
from django.utils import timezone

from drivers.models import DriverProfile
from services.ride_management.exceptions import DriverNotAvailableError, RideValidationError

logger = logging.getLogger(__name__)


def get_driver_profile(user) -> DriverProfile:
    """Return the driver's profile, creating an offline one on first use."""
    profile, created = DriverProfile.objects.get_or_create(user=user)
    if created:
        logger.info("Created driver profile for user %s", user.pk)
    return profile


# DRIVER STATUS UPDATE
@transaction.atomic
def update_driver_status(profile: DriverProfile, new_status: str) -> DriverProfile:
    """
    Switch a driver between online and offline.

    Busy is owned by the ride flow; a busy driver cannot go offline until the
    active ride is completed or cancelled.
    """
    if new_status not in (DriverProfile.ONLINE, DriverProfile.OFFLINE):
        raise RideValidationError("Status must be one of: online, offline")

    locked = DriverProfile.objects.select_for_update().get(pk=profile.pk)
    if locked.status == DriverProfile.BUSY:
        raise DriverNotAvailableError("Finish or cancel your active ride before changing status")

    locked.status = new_status
    locked.save(update_fields=["status"])
    logger.info("Driver %s is now %s", locked.user_id, new_status)

    profile.status = locked.status
    return profile


@transaction.atomic
def update_driver_location(profile: DriverProfile, lat, lon) -> DriverProfile:
    """
    Record the driver's GPS position and mark them online.

    A busy driver keeps the busy status while reporting positions.
    """
    locked = DriverProfile.objects.select_for_update().get(pk=profile.pk)
    locked.current_latitude = lat
    locked.current_longitude = lon
    locked.last_location_update = timezone.now()
    if locked.status == DriverProfile.OFFLINE:
        locked.status = DriverProfile.ONLINE
    locked.save(update_fields=["current_latitude", "current_longitude", "last_location_update", "status"])

    profile.current_latitude = locked.current_latitude
    profile.current_longitude = locked.current_longitude
    profile.last_location_update = locked.last_location_update
    profile.status = locked.status
    return profile
