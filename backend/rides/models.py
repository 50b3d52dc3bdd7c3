from django.db import models
from django.conf import settings
from django.utils import timezone


class RideRequest(models.Model):
    """A rider's trip request, open for drivers to accept until it expires."""

    OPEN = 'open'
    MATCHED = 'matched'
    EXPIRED = 'expired'
    CANCELLED = 'cancelled'

    STATUS_CHOICES = [
        (OPEN, 'Open'),
        (MATCHED, 'Matched'),
        (EXPIRED, 'Expired'),
        (CANCELLED, 'Cancelled'),
    ]

    rider = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='ride_requests'
    )

    # Pickup location
    pickup_latitude = models.DecimalField(max_digits=9, decimal_places=6)
    pickup_longitude = models.DecimalField(max_digits=9, decimal_places=6)
    pickup_address = models.TextField()
    pickup_geohash = models.CharField(max_length=12, db_index=True)

    # Dropoff location
    dropoff_latitude = models.DecimalField(max_digits=9, decimal_places=6)
    dropoff_longitude = models.DecimalField(max_digits=9, decimal_places=6)
    dropoff_address = models.TextField()

    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=OPEN)

    # Estimates (straight-line distance)
    estimated_fare = models.PositiveIntegerField()
    estimated_distance_km = models.DecimalField(max_digits=8, decimal_places=2)
    estimated_duration_min = models.PositiveIntegerField()

    # Timestamps
    created_at = models.DateTimeField(default=timezone.now)
    expires_at = models.DateTimeField()
    matched_at = models.DateTimeField(null=True, blank=True)
    cancelled_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        db_table = 'ride_requests'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['status', 'pickup_geohash'], name='ride_req_status_geohash_idx'),
            models.Index(fields=['rider', 'status'], name='ride_req_rider_status_idx'),
        ]

    def __str__(self):
        return f"Request #{self.id} - {self.rider} - {self.status}"

    def is_past_expiry(self, now=None):
        return (now or timezone.now()) >= self.expires_at


class Ride(models.Model):
    """The trip created when exactly one driver wins a ride request."""

    DRIVER_ASSIGNED = 'driver_assigned'
    STARTED = 'started'
    COMPLETED = 'completed'
    CANCELLED = 'cancelled'

    STATUS_CHOICES = [
        (DRIVER_ASSIGNED, 'Driver Assigned'),
        (STARTED, 'Started'),
        (COMPLETED, 'Completed'),
        (CANCELLED, 'Cancelled'),
    ]

    ACTIVE_STATUSES = (DRIVER_ASSIGNED, STARTED)
    TERMINAL_STATUSES = (COMPLETED, CANCELLED)

    request = models.OneToOneField(
        RideRequest,
        on_delete=models.PROTECT,
        related_name='ride'
    )

    rider = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='rides_taken'
    )

    driver = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='rides_driven'
    )

    # Snapshot of the request's route at match time
    pickup_latitude = models.DecimalField(max_digits=9, decimal_places=6)
    pickup_longitude = models.DecimalField(max_digits=9, decimal_places=6)
    pickup_address = models.TextField()
    dropoff_latitude = models.DecimalField(max_digits=9, decimal_places=6)
    dropoff_longitude = models.DecimalField(max_digits=9, decimal_places=6)
    dropoff_address = models.TextField()

    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=DRIVER_ASSIGNED)
    final_fare = models.PositiveIntegerField(null=True, blank=True)

    # Timestamps
    assigned_at = models.DateTimeField(default=timezone.now)
    started_at = models.DateTimeField(null=True, blank=True)
    completed_at = models.DateTimeField(null=True, blank=True)
    cancelled_at = models.DateTimeField(null=True, blank=True)
    rider_acknowledged_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        db_table = 'rides'
        ordering = ['-assigned_at']
        constraints = [
            models.UniqueConstraint(
                fields=['driver'],
                condition=models.Q(status__in=['driver_assigned', 'started']),
                name='unique_active_ride_per_driver'
            )
        ]

    def __str__(self):
        return f"Ride #{self.id} - Request {self.request_id} -> {self.driver} - {self.status}"

    @property
    def is_active(self):
        return self.status in self.ACTIVE_STATUSES


class DriverResponse(models.Model):
    """A driver's accept/reject answer to a ride request; one row per pair."""

    ACCEPTED = 'accepted'
    REJECTED = 'rejected'

    RESPONSE_CHOICES = [
        (ACCEPTED, 'Accepted'),
        (REJECTED, 'Rejected'),
    ]

    request = models.ForeignKey(
        RideRequest,
        on_delete=models.CASCADE,
        related_name='responses'
    )

    driver = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='ride_responses'
    )

    response_status = models.CharField(max_length=10, choices=RESPONSE_CHOICES)
    response_time = models.DateTimeField(default=timezone.now)

    class Meta:
        db_table = 'driver_responses'
        constraints = [
            models.UniqueConstraint(
                fields=['request', 'driver'],
                name='unique_request_driver_response'
            )
        ]

    def __str__(self):
        return f"Response {self.response_status} - Request {self.request_id} -> Driver {self.driver_id}"
