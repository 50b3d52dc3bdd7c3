"""
Proximity search over open ride requests.

Candidates are narrowed with indexed geohash prefix lookups on the pickup
point, then filtered and ranked by exact Haversine distance (closest first).
"""

import logging
from dataclasses import dataclass
from functools import reduce
from operator import or_
from typing import List

from django.db.models import Q
from django.utils import timezone

from common.utils import (
    calculate_distance,
    dispatch_setting,
    geohash_precision_for_radius,
    get_covering_geohashes,
)
from rides.models import DriverResponse, RideRequest
from services.ride_management.exceptions import RideNotFoundError, RideValidationError
from services.ride_management.ride_lifecycle import validate_point

logger = logging.getLogger(__name__)


@dataclass
class NearbyRequest:
    """An open ride request as seen from a driver's position."""
    ride_request: RideRequest
    distance_meters: int

    @property
    def rider_name(self) -> str:
        return self.ride_request.rider.display_name


def _validate_radius(radius_meters) -> float:
    try:
        radius = float(radius_meters)
    except (TypeError, ValueError):
        raise RideValidationError("radius must be a number")

    max_radius = dispatch_setting("MAX_SEARCH_RADIUS_METERS")
    if not 0 < radius <= max_radius:
        raise RideValidationError(f"radius must be between 0 and {max_radius} meters")
    return radius


def find_nearby_requests(driver, latitude, longitude, radius_meters=None, now=None) -> List[NearbyRequest]:
    """
    Find open ride requests around a driver's location.

    Args:
        driver: User model instance (driver)
        latitude: Driver latitude
        longitude: Driver longitude
        radius_meters: Search radius, defaults to DEFAULT_SEARCH_RADIUS_METERS

    Returns:
        NearbyRequest list sorted by distance (closest first). Requests the
        driver already accepted or rejected are left out, and open requests
        found past their expiry are expired and left out.

    Raises:
        RideValidationError: If the location or radius is malformed
    """
    lat, lon = validate_point(latitude, longitude, "driver")
    if radius_meters is None:
        radius_meters = dispatch_setting("DEFAULT_SEARCH_RADIUS_METERS")
    radius = _validate_radius(radius_meters)
    now = now or timezone.now()

    precision = geohash_precision_for_radius(lat, radius)
    cells = get_covering_geohashes(lat, lon, radius, precision)
    in_cells = reduce(or_, (Q(pickup_geohash__startswith=cell) for cell in cells))

    responded = DriverResponse.objects.filter(driver=driver).values("request_id")
    candidates = (
        RideRequest.objects.select_related("rider")
        .filter(in_cells, status=RideRequest.OPEN)
        .exclude(id__in=responded)
    )

    results: List[NearbyRequest] = []
    stale_ids = []
    for ride_request in candidates:
        if ride_request.is_past_expiry(now):
            stale_ids.append(ride_request.pk)
            continue

        distance = calculate_distance(
            lat, lon, ride_request.pickup_latitude, ride_request.pickup_longitude
        )
        if distance <= radius:
            results.append(NearbyRequest(ride_request=ride_request, distance_meters=round(distance)))

    if stale_ids:
        # Lazy expiry; conditional so a concurrent match is never overwritten
        expired = RideRequest.objects.filter(
            pk__in=stale_ids, status=RideRequest.OPEN, expires_at__lte=now
        ).update(status=RideRequest.EXPIRED)
        logger.info("Expired %d stale ride request(s) during proximity search", expired)

    results.sort(key=lambda item: (item.distance_meters, item.ride_request.created_at))

    logger.debug(
        "Driver %s: %d open request(s) within %sm (precision=%d, cells=%d)",
        driver.pk, len(results), radius, precision, len(cells),
    )
    return results


def reject_ride_request(driver, request_id: int, now=None) -> DriverResponse:
    """
    Record that the driver declined a request.

    Idempotent: a repeat updates the existing response row with a fresh
    timestamp. The request itself is not modified and need not be open.

    Raises:
        RideNotFoundError: If the request does not exist
    """
    if not RideRequest.objects.filter(pk=request_id).exists():
        raise RideNotFoundError("Request not found")

    response, created = DriverResponse.objects.update_or_create(
        request_id=request_id,
        driver=driver,
        defaults={
            "response_status": DriverResponse.REJECTED,
            "response_time": now or timezone.now(),
        },
    )
    logger.info(
        "Driver %s rejected ride request %s (%s)",
        driver.pk, request_id, "new" if created else "updated",
    )
    return response
