from datetime import timedelta
from decimal import Decimal, ROUND_HALF_UP

from django.test import TestCase, override_settings
from django.utils import timezone

from common.testing import DROPOFF, PICKUP, make_driver, make_rider, request_payload
from drivers.models import DriverProfile
from rides.models import Ride, RideRequest
from services.matching import accept_ride_request
from services.ride_management import (
    ActiveRideExistsError,
    DriverNotAvailableError,
    RideNotAvailableError,
    RideNotFoundError,
    RideValidationError,
    cancel_ride_request,
    create_ride_request,
    estimate_fare,
    expire_ride_request,
    expire_stale_requests,
    get_active_phase,
    update_ride_status,
)


class FareEstimateTests(TestCase):
    def test_dhaka_trip_estimate(self):
        estimate = estimate_fare(*PICKUP, *DROPOFF)

        self.assertGreaterEqual(estimate.distance_km, Decimal("3.55"))
        self.assertLessEqual(estimate.distance_km, Decimal("3.65"))
        self.assertEqual(estimate.estimated_fare, 104)
        self.assertEqual(estimate.estimated_duration_min, 11)

    def test_fare_follows_base_plus_per_km(self):
        estimate = estimate_fare(*PICKUP, *DROPOFF)
        expected = (50 + estimate.distance_km * 15).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
        self.assertEqual(estimate.estimated_fare, int(expected))

    def test_same_point_costs_base_fare(self):
        estimate = estimate_fare(*PICKUP, *PICKUP)
        self.assertEqual(estimate.distance_km, Decimal("0.00"))
        self.assertEqual(estimate.estimated_fare, 50)
        self.assertEqual(estimate.estimated_duration_min, 0)

    def test_estimate_is_deterministic(self):
        self.assertEqual(estimate_fare(*PICKUP, *DROPOFF), estimate_fare(*PICKUP, *DROPOFF))

    @override_settings(RIDE_DISPATCH={"BASE_FARE": 100, "PER_KM_FARE": 0})
    def test_fare_constants_come_from_settings(self):
        self.assertEqual(estimate_fare(*PICKUP, *DROPOFF).estimated_fare, 100)

    def test_rejects_out_of_range_coordinates(self):
        with self.assertRaises(RideValidationError):
            estimate_fare(91, 90.4125, *DROPOFF)
        with self.assertRaises(RideValidationError):
            estimate_fare(*PICKUP, 23.78, "east")


class CreateRideRequestTests(TestCase):
    def setUp(self):
        self.rider = make_rider()

    def test_creates_open_request_with_estimate(self):
        now = timezone.now()
        ride_request = create_ride_request(self.rider, now=now, **request_payload())
        estimate = estimate_fare(*PICKUP, *DROPOFF)

        self.assertEqual(ride_request.status, RideRequest.OPEN)
        self.assertEqual(ride_request.rider, self.rider)
        self.assertEqual(ride_request.estimated_fare, estimate.estimated_fare)
        self.assertEqual(ride_request.estimated_distance_km, estimate.distance_km)
        self.assertEqual(ride_request.estimated_duration_min, estimate.estimated_duration_min)
        self.assertEqual(ride_request.expires_at - ride_request.created_at, timedelta(minutes=5))
        self.assertEqual(len(ride_request.pickup_geohash), 7)

    def test_missing_address_creates_nothing(self):
        with self.assertRaises(RideValidationError):
            create_ride_request(self.rider, **request_payload(pickup_address="   "))
        self.assertFalse(RideRequest.objects.exists())

    def test_missing_coordinate_creates_nothing(self):
        payload = request_payload()
        payload["dropoff_longitude"] = None
        with self.assertRaises(RideValidationError):
            create_ride_request(self.rider, **payload)
        self.assertFalse(RideRequest.objects.exists())

    def test_second_open_request_is_refused(self):
        create_ride_request(self.rider, **request_payload())

        with self.assertRaises(ActiveRideExistsError):
            create_ride_request(self.rider, **request_payload())
        self.assertEqual(RideRequest.objects.filter(rider=self.rider).count(), 1)

    def test_new_request_allowed_once_previous_expired(self):
        first = create_ride_request(self.rider, now=timezone.now() - timedelta(minutes=10), **request_payload())

        second = create_ride_request(self.rider, **request_payload())

        first.refresh_from_db()
        self.assertEqual(first.status, RideRequest.EXPIRED)
        self.assertEqual(second.status, RideRequest.OPEN)

    def test_active_ride_blocks_new_request(self):
        ride_request = create_ride_request(self.rider, **request_payload())
        accept_ride_request(make_driver(), ride_request.pk)

        with self.assertRaises(ActiveRideExistsError):
            create_ride_request(self.rider, **request_payload())


class ExpiryTests(TestCase):
    def setUp(self):
        self.rider = make_rider()
        self.now = timezone.now()
        self.ride_request = create_ride_request(self.rider, now=self.now, **request_payload())

    def test_expiry_waits_for_deadline(self):
        self.assertFalse(expire_ride_request(self.ride_request, now=self.now + timedelta(seconds=299)))
        self.ride_request.refresh_from_db()
        self.assertEqual(self.ride_request.status, RideRequest.OPEN)

    def test_expiry_applies_once(self):
        later = self.now + timedelta(seconds=301)
        self.assertTrue(expire_ride_request(self.ride_request, now=later))
        self.assertFalse(expire_ride_request(self.ride_request, now=later))

        self.ride_request.refresh_from_db()
        self.assertEqual(self.ride_request.status, RideRequest.EXPIRED)

    def test_expiry_never_touches_matched_request(self):
        accept_ride_request(make_driver(), self.ride_request.pk, now=self.now)

        self.assertFalse(expire_ride_request(self.ride_request, now=self.now + timedelta(hours=1)))
        self.ride_request.refresh_from_db()
        self.assertEqual(self.ride_request.status, RideRequest.MATCHED)

    def test_sweep_counts_only_stale_open_requests(self):
        create_ride_request(make_rider("fresh"), now=self.now + timedelta(minutes=4), **request_payload())

        expired = expire_stale_requests(now=self.now + timedelta(minutes=6))

        self.assertEqual(expired, 1)
        self.assertEqual(RideRequest.objects.filter(status=RideRequest.OPEN).count(), 1)


class CancelRideRequestTests(TestCase):
    def setUp(self):
        self.rider = make_rider()
        self.ride_request = create_ride_request(self.rider, **request_payload())

    def test_rider_cancels_open_request(self):
        cancelled = cancel_ride_request(self.rider, self.ride_request.pk)

        self.assertEqual(cancelled.status, RideRequest.CANCELLED)
        self.ride_request.refresh_from_db()
        self.assertEqual(self.ride_request.status, RideRequest.CANCELLED)
        self.assertIsNotNone(self.ride_request.cancelled_at)

    def test_other_rider_gets_not_found(self):
        with self.assertRaises(RideNotFoundError):
            cancel_ride_request(make_rider("stranger"), self.ride_request.pk)

    def test_matched_request_cannot_be_cancelled(self):
        accept_ride_request(make_driver(), self.ride_request.pk)

        with self.assertRaises(RideNotAvailableError):
            cancel_ride_request(self.rider, self.ride_request.pk)

    def test_stale_request_is_expired_not_cancelled(self):
        with self.assertRaises(RideNotAvailableError):
            cancel_ride_request(self.rider, self.ride_request.pk, now=timezone.now() + timedelta(minutes=6))

        self.ride_request.refresh_from_db()
        self.assertEqual(self.ride_request.status, RideRequest.EXPIRED)


class RideStatusTests(TestCase):
    def setUp(self):
        self.rider = make_rider()
        self.driver = make_driver()
        self.ride_request = create_ride_request(self.rider, **request_payload())
        self.ride = accept_ride_request(self.driver, self.ride_request.pk)

    def _driver_status(self, driver=None):
        return DriverProfile.objects.get(user=driver or self.driver).status

    def test_start_sets_started_at(self):
        ride = update_ride_status(self.driver, self.ride.pk, Ride.STARTED)

        self.assertEqual(ride.status, Ride.STARTED)
        self.assertIsNotNone(ride.started_at)
        self.assertEqual(self._driver_status(), DriverProfile.BUSY)

    def test_complete_freezes_fare_and_frees_driver(self):
        update_ride_status(self.driver, self.ride.pk, Ride.STARTED)
        ride = update_ride_status(self.driver, self.ride.pk, Ride.COMPLETED)

        ride.refresh_from_db()
        self.assertEqual(ride.status, Ride.COMPLETED)
        self.assertIsNotNone(ride.completed_at)
        self.assertEqual(ride.final_fare, self.ride_request.estimated_fare)
        self.assertEqual(self._driver_status(), DriverProfile.ONLINE)

    def test_assigned_ride_can_complete_directly(self):
        ride = update_ride_status(self.driver, self.ride.pk, Ride.COMPLETED)

        self.assertEqual(ride.status, Ride.COMPLETED)
        self.assertIsNone(ride.started_at)
        self.assertEqual(self._driver_status(), DriverProfile.ONLINE)

    def test_cancel_frees_driver(self):
        ride = update_ride_status(self.driver, self.ride.pk, Ride.CANCELLED)

        self.assertEqual(ride.status, Ride.CANCELLED)
        self.assertIsNotNone(ride.cancelled_at)
        self.assertEqual(self._driver_status(), DriverProfile.ONLINE)

    def _second_ride(self):
        second_request = create_ride_request(make_rider("second_rider"), **request_payload())
        return accept_ride_request(self.driver, second_request.pk)

    def test_finishing_a_finished_ride_keeps_driver_busy(self):
        update_ride_status(self.driver, self.ride.pk, Ride.COMPLETED)
        second = self._second_ride()

        update_ride_status(self.driver, self.ride.pk, Ride.CANCELLED)

        self.assertEqual(self._driver_status(), DriverProfile.BUSY)
        second.refresh_from_db()
        self.assertEqual(second.status, Ride.DRIVER_ASSIGNED)

    def test_cancel_after_complete_drops_fare(self):
        update_ride_status(self.driver, self.ride.pk, Ride.COMPLETED)
        ride = update_ride_status(self.driver, self.ride.pk, Ride.CANCELLED)

        ride.refresh_from_db()
        self.assertEqual(ride.status, Ride.CANCELLED)
        self.assertIsNone(ride.final_fare)
        self.assertIsNone(ride.completed_at)
        self.assertIsNotNone(ride.cancelled_at)
        self.assertEqual(self._driver_status(), DriverProfile.ONLINE)

    def test_restarting_finished_ride_marks_driver_busy(self):
        update_ride_status(self.driver, self.ride.pk, Ride.COMPLETED)
        self.assertEqual(self._driver_status(), DriverProfile.ONLINE)

        ride = update_ride_status(self.driver, self.ride.pk, Ride.STARTED)

        ride.refresh_from_db()
        self.assertEqual(ride.status, Ride.STARTED)
        self.assertIsNone(ride.completed_at)
        self.assertIsNone(ride.final_fare)
        self.assertEqual(self._driver_status(), DriverProfile.BUSY)

    def test_restart_refused_while_driver_has_another_active_ride(self):
        update_ride_status(self.driver, self.ride.pk, Ride.COMPLETED)
        second = self._second_ride()

        with self.assertRaises(DriverNotAvailableError):
            update_ride_status(self.driver, self.ride.pk, Ride.STARTED)

        self.ride.refresh_from_db()
        second.refresh_from_db()
        self.assertEqual(self.ride.status, Ride.COMPLETED)
        self.assertEqual(self.ride.final_fare, self.ride_request.estimated_fare)
        self.assertEqual(second.status, Ride.DRIVER_ASSIGNED)
        self.assertEqual(self._driver_status(), DriverProfile.BUSY)

    def test_other_driver_gets_not_found(self):
        other = make_driver("other_driver")

        with self.assertRaises(RideNotFoundError):
            update_ride_status(other, self.ride.pk, Ride.STARTED)
        self.ride.refresh_from_db()
        self.assertEqual(self.ride.status, Ride.DRIVER_ASSIGNED)

    def test_driver_assigned_is_not_a_valid_target(self):
        with self.assertRaises(RideValidationError):
            update_ride_status(self.driver, self.ride.pk, Ride.DRIVER_ASSIGNED)

    def test_unknown_status_is_rejected(self):
        with self.assertRaises(RideValidationError):
            update_ride_status(self.driver, self.ride.pk, "teleported")


class ActivePhaseTests(TestCase):
    def setUp(self):
        self.rider = make_rider()
        self.driver = make_driver()

    def _request(self, **kwargs):
        return create_ride_request(self.rider, **request_payload(), **kwargs)

    def test_idle_without_requests(self):
        result = get_active_phase(self.rider)
        self.assertEqual(result.phase, "idle")
        self.assertIsNone(result.ride_request)

    def test_searching_while_open(self):
        ride_request = self._request()

        result = get_active_phase(self.rider)

        self.assertEqual(result.phase, "searching")
        self.assertEqual(result.ride_request, ride_request)

    def test_stale_open_request_reports_expiry(self):
        now = timezone.now()
        ride_request = self._request(now=now)

        result = get_active_phase(self.rider, now=now + timedelta(minutes=6))

        self.assertEqual(result.phase, "idle")
        self.assertIn("expired", result.message)
        ride_request.refresh_from_db()
        self.assertEqual(ride_request.status, RideRequest.EXPIRED)

    def test_matched_then_in_progress(self):
        ride_request = self._request()
        ride = accept_ride_request(self.driver, ride_request.pk)

        matched = get_active_phase(self.rider)
        self.assertEqual(matched.phase, "matched")
        self.assertEqual(matched.ride, ride)

        update_ride_status(self.driver, ride.pk, Ride.STARTED)
        self.assertEqual(get_active_phase(self.rider).phase, "in_progress")

    def test_completed_is_reported_once(self):
        ride_request = self._request()
        ride = accept_ride_request(self.driver, ride_request.pk)
        update_ride_status(self.driver, ride.pk, Ride.STARTED)
        update_ride_status(self.driver, ride.pk, Ride.COMPLETED)

        first = get_active_phase(self.rider)
        self.assertEqual(first.phase, "completed")
        self.assertEqual(first.ride.pk, ride.pk)

        self.assertEqual(get_active_phase(self.rider).phase, "idle")

    def test_completed_outside_window_is_idle(self):
        ride_request = self._request()
        ride = accept_ride_request(self.driver, ride_request.pk)
        update_ride_status(self.driver, ride.pk, Ride.COMPLETED)

        result = get_active_phase(self.rider, now=timezone.now() + timedelta(minutes=10))

        self.assertEqual(result.phase, "idle")

    def test_cancelled_ride_reports_idle_with_message(self):
        ride_request = self._request()
        ride = accept_ride_request(self.driver, ride_request.pk)
        update_ride_status(self.driver, ride.pk, Ride.CANCELLED)

        result = get_active_phase(self.rider)

        self.assertEqual(result.phase, "idle")
        self.assertEqual(result.message, "Ride was cancelled")

    def test_new_request_after_completion_is_searching(self):
        ride_request = self._request()
        ride = accept_ride_request(self.driver, ride_request.pk)
        update_ride_status(self.driver, ride.pk, Ride.COMPLETED)
        self._request()

        self.assertEqual(get_active_phase(self.rider).phase, "searching")
