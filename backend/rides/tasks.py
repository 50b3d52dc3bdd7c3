"""Celery tasks for ride-related background processing."""

from celery import shared_task
import logging

logger = logging.getLogger(__name__)


@shared_task
def expire_stale_ride_requests_task():
    """
    Periodic sweep that expires open requests past their expiry.

    Reads already expire requests lazily; the sweep keeps requests nobody
    polls from lingering as open. Scheduled by Celery beat when
    REQUEST_SWEEP_INTERVAL_SECONDS is non-zero.
    """
    from services.ride_management import expire_stale_requests

    expired_count = expire_stale_requests()
    logger.info("Expiry sweep finished: %d request(s) expired", expired_count)
    return expired_count
