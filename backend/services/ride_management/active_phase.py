"""
Rider-facing phase projection for polling clients.

Reduces the rider's request and ride rows to one of:
    idle -> searching -> matched -> in_progress -> completed

Safe to call on every poll. The only writes are the lazy expiry of a stale
open request and marking a finished ride's summary as shown, so the
completed phase is reported once and the next poll returns idle.
"""

import logging
from dataclasses import dataclass
from datetime import timedelta
from typing import Optional

from django.db.models import Q
from django.utils import timezone

from common.utils import dispatch_setting
from rides.models import Ride, RideRequest
from .ride_lifecycle import expire_ride_request

logger = logging.getLogger(__name__)

PHASE_IDLE = "idle"
PHASE_SEARCHING = "searching"
PHASE_MATCHED = "matched"
PHASE_IN_PROGRESS = "in_progress"
PHASE_COMPLETED = "completed"


@dataclass
class ActivePhase:
    """Result object for the rider polling endpoint."""
    phase: str
    message: str = ""
    ride_request: Optional[RideRequest] = None
    ride: Optional[Ride] = None


def _latest_active_request(rider) -> Optional[RideRequest]:
    return (
        RideRequest.objects.filter(rider=rider)
        .filter(
            Q(status=RideRequest.OPEN)
            | Q(status=RideRequest.MATCHED, ride__isnull=True)
            | Q(status=RideRequest.MATCHED, ride__status__in=Ride.ACTIVE_STATUSES)
        )
        .order_by("-created_at")
        .first()
    )


def _finished_ride_summary(rider, now) -> ActivePhase:
    """Report a just-finished ride once, inside the summary window."""
    since = now - timedelta(seconds=dispatch_setting("COMPLETED_SUMMARY_WINDOW_SECONDS"))
    ride = (
        Ride.objects.select_related("request", "driver")
        .filter(
            rider=rider,
            rider_acknowledged_at__isnull=True,
        )
        .filter(
            Q(status=Ride.COMPLETED, completed_at__gte=since)
            | Q(status=Ride.CANCELLED, cancelled_at__gte=since)
        )
        .order_by("-assigned_at")
        .first()
    )
    if ride is None:
        return ActivePhase(phase=PHASE_IDLE)

    # Concurrent polls race on this guarded update; only one reports the summary
    acknowledged = Ride.objects.filter(
        pk=ride.pk, rider_acknowledged_at__isnull=True
    ).update(rider_acknowledged_at=now)
    if not acknowledged:
        return ActivePhase(phase=PHASE_IDLE)
    ride.rider_acknowledged_at = now

    if ride.status == Ride.COMPLETED:
        return ActivePhase(
            phase=PHASE_COMPLETED,
            message="Your ride has been completed.",
            ride_request=ride.request,
            ride=ride,
        )
    return ActivePhase(phase=PHASE_IDLE, message="Ride was cancelled")


def get_active_phase(rider, now=None) -> ActivePhase:
    """
    Derive the rider's current phase.

    Never raises for ordinary state (e.g. no active ride); only database
    failures propagate.
    """
    now = now or timezone.now()
    ride_request = _latest_active_request(rider)

    if ride_request is None:
        return _finished_ride_summary(rider, now)

    if ride_request.status == RideRequest.OPEN:
        if ride_request.is_past_expiry(now):
            expire_ride_request(ride_request, now=now)
            return ActivePhase(
                phase=PHASE_IDLE,
                message="Your ride request expired. No drivers found.",
            )
        return ActivePhase(
            phase=PHASE_SEARCHING,
            message="Searching for nearby drivers...",
            ride_request=ride_request,
        )

    ride = (
        Ride.objects.select_related("driver", "driver__driver_profile")
        .filter(request=ride_request)
        .first()
    )
    if ride is None:
        return ActivePhase(
            phase=PHASE_SEARCHING,
            message="Searching for nearby drivers...",
            ride_request=ride_request,
        )

    if ride.status in Ride.TERMINAL_STATUSES:
        # Finished between the two reads
        return _finished_ride_summary(rider, now)

    if ride.status == Ride.STARTED:
        return ActivePhase(
            phase=PHASE_IN_PROGRESS,
            message="Your ride is in progress.",
            ride_request=ride_request,
            ride=ride,
        )
    return ActivePhase(
        phase=PHASE_MATCHED,
        message="Driver is on the way!",
        ride_request=ride_request,
        ride=ride,
    )
