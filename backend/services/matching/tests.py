import threading
from datetime import timedelta
from unittest.mock import patch

from django.db import DatabaseError, connection
from django.test import TestCase, TransactionTestCase, skipUnlessDBFeature
from django.utils import timezone

from common.testing import FAR_AWAY, NEAR_PICKUP, PICKUP, make_driver, make_rider, request_payload
from drivers.models import DriverProfile
from rides.models import DriverResponse, Ride, RideRequest
from services.matching import accept_ride_request, find_nearby_requests, reject_ride_request
from services.ride_management import (
    DispatchStoreError,
    DriverNotAvailableError,
    RideNotAvailableError,
    RideNotFoundError,
    RideValidationError,
    cancel_ride_request,
    create_ride_request,
)

# ~2.2 km south of the driver
FURTHER_PICKUP = (23.7950, 90.4150)


class NearbyRequestsTests(TestCase):
    def setUp(self):
        self.driver = make_driver()
        self.close = create_ride_request(make_rider("close"), **request_payload())
        self.further = create_ride_request(make_rider("further"), **request_payload(pickup=FURTHER_PICKUP))
        self.far = create_ride_request(make_rider("far"), **request_payload(pickup=FAR_AWAY))

    def _ids(self, results):
        return [item.ride_request.pk for item in results]

    def test_sorted_by_distance_within_default_radius(self):
        results = find_nearby_requests(self.driver, *NEAR_PICKUP)

        self.assertEqual(self._ids(results), [self.close.pk, self.further.pk])
        self.assertLess(results[0].distance_meters, results[1].distance_meters)
        self.assertAlmostEqual(results[0].distance_meters, 580, delta=30)
        self.assertEqual(results[0].rider_name, "Close")

    def test_every_result_is_within_radius(self):
        for radius in (1000, 5000, 30000):
            for item in find_nearby_requests(self.driver, *NEAR_PICKUP, radius_meters=radius):
                self.assertLessEqual(item.distance_meters, radius)

    def test_smaller_radius_narrows_results(self):
        results = find_nearby_requests(self.driver, *NEAR_PICKUP, radius_meters=1000)
        self.assertEqual(self._ids(results), [self.close.pk])

    def test_large_radius_reaches_far_request(self):
        results = find_nearby_requests(self.driver, *NEAR_PICKUP, radius_meters=30000)
        self.assertEqual(self._ids(results), [self.close.pk, self.further.pk, self.far.pk])

    def test_rejected_request_is_hidden_from_that_driver_only(self):
        reject_ride_request(self.driver, self.close.pk)

        self.assertNotIn(self.close.pk, self._ids(find_nearby_requests(self.driver, *NEAR_PICKUP)))
        other = make_driver("other_driver")
        self.assertIn(self.close.pk, self._ids(find_nearby_requests(other, *NEAR_PICKUP)))

    def test_matched_request_is_hidden(self):
        accept_ride_request(make_driver("winner"), self.close.pk)

        self.assertNotIn(self.close.pk, self._ids(find_nearby_requests(self.driver, *NEAR_PICKUP)))

    def test_stale_request_is_hidden_and_expired(self):
        stale = create_ride_request(
            make_rider("stale"),
            now=timezone.now() - timedelta(minutes=6),
            **request_payload()
        )

        results = find_nearby_requests(self.driver, *NEAR_PICKUP)

        self.assertNotIn(stale.pk, self._ids(results))
        stale.refresh_from_db()
        self.assertEqual(stale.status, RideRequest.EXPIRED)

    def test_invalid_radius(self):
        with self.assertRaises(RideValidationError):
            find_nearby_requests(self.driver, *NEAR_PICKUP, radius_meters=0)
        with self.assertRaises(RideValidationError):
            find_nearby_requests(self.driver, *NEAR_PICKUP, radius_meters=10 ** 7)

    def test_invalid_location(self):
        with self.assertRaises(RideValidationError):
            find_nearby_requests(self.driver, 95, 90.4)


class RejectRideRequestTests(TestCase):
    def setUp(self):
        self.driver = make_driver()
        self.ride_request = create_ride_request(make_rider(), **request_payload())

    def test_reject_twice_keeps_one_row(self):
        first = reject_ride_request(self.driver, self.ride_request.pk)
        later = timezone.now() + timedelta(seconds=30)
        second = reject_ride_request(self.driver, self.ride_request.pk, now=later)

        self.assertEqual(first.pk, second.pk)
        self.assertEqual(DriverResponse.objects.filter(driver=self.driver).count(), 1)
        second.refresh_from_db()
        self.assertEqual(second.response_status, DriverResponse.REJECTED)
        self.assertEqual(second.response_time, later)

    def test_reject_does_not_change_request(self):
        reject_ride_request(self.driver, self.ride_request.pk)

        self.ride_request.refresh_from_db()
        self.assertEqual(self.ride_request.status, RideRequest.OPEN)

    def test_reject_closed_request_is_recorded(self):
        cancel_ride_request(self.ride_request.rider, self.ride_request.pk)

        response = reject_ride_request(self.driver, self.ride_request.pk)
        self.assertEqual(response.response_status, DriverResponse.REJECTED)

    def test_reject_unknown_request(self):
        with self.assertRaises(RideNotFoundError):
            reject_ride_request(self.driver, 999999)


class AcceptRideRequestTests(TestCase):
    def setUp(self):
        self.rider = make_rider()
        self.driver = make_driver()
        self.ride_request = create_ride_request(self.rider, **request_payload())

    def test_accept_creates_ride(self):
        ride = accept_ride_request(self.driver, self.ride_request.pk)

        self.ride_request.refresh_from_db()
        self.assertEqual(self.ride_request.status, RideRequest.MATCHED)
        self.assertIsNotNone(self.ride_request.matched_at)

        self.assertEqual(ride.status, Ride.DRIVER_ASSIGNED)
        self.assertEqual(ride.request, self.ride_request)
        self.assertEqual(ride.rider, self.rider)
        self.assertEqual(ride.driver, self.driver)
        self.assertEqual(ride.pickup_address, self.ride_request.pickup_address)
        self.assertEqual(ride.dropoff_latitude, self.ride_request.dropoff_latitude)

        response = DriverResponse.objects.get(request=self.ride_request, driver=self.driver)
        self.assertEqual(response.response_status, DriverResponse.ACCEPTED)
        self.assertEqual(DriverProfile.objects.get(user=self.driver).status, DriverProfile.BUSY)

    def test_accept_after_reject_changes_mind(self):
        reject_ride_request(self.driver, self.ride_request.pk)
        accept_ride_request(self.driver, self.ride_request.pk)

        response = DriverResponse.objects.get(request=self.ride_request, driver=self.driver)
        self.assertEqual(response.response_status, DriverResponse.ACCEPTED)

    def test_second_driver_loses(self):
        accept_ride_request(self.driver, self.ride_request.pk)
        loser = make_driver("loser")

        with self.assertRaises(RideNotAvailableError):
            accept_ride_request(loser, self.ride_request.pk)

        self.assertEqual(Ride.objects.filter(request=self.ride_request).count(), 1)
        self.assertEqual(DriverProfile.objects.get(user=loser).status, DriverProfile.ONLINE)
        self.assertFalse(DriverResponse.objects.filter(driver=loser).exists())

    def test_many_sequential_attempts_have_one_winner(self):
        drivers = [make_driver(f"driver_{i}") for i in range(5)]
        wins = 0
        for driver in drivers:
            try:
                accept_ride_request(driver, self.ride_request.pk)
                wins += 1
            except RideNotAvailableError:
                pass

        self.assertEqual(wins, 1)
        self.assertEqual(Ride.objects.count(), 1)
        self.assertEqual(DriverProfile.objects.filter(status=DriverProfile.BUSY).count(), 1)

    def test_stale_request_cannot_be_accepted(self):
        with self.assertRaises(RideNotAvailableError):
            accept_ride_request(self.driver, self.ride_request.pk, now=timezone.now() + timedelta(minutes=6))

        self.ride_request.refresh_from_db()
        self.assertEqual(self.ride_request.status, RideRequest.EXPIRED)
        self.assertFalse(Ride.objects.exists())
        self.assertEqual(DriverProfile.objects.get(user=self.driver).status, DriverProfile.ONLINE)

    def test_cancelled_request_cannot_be_accepted(self):
        cancel_ride_request(self.rider, self.ride_request.pk)

        with self.assertRaises(RideNotAvailableError):
            accept_ride_request(self.driver, self.ride_request.pk)
        self.assertFalse(Ride.objects.exists())

    def test_unknown_request(self):
        with self.assertRaises(RideNotFoundError):
            accept_ride_request(self.driver, 999999)

    def test_busy_driver_cannot_take_second_request(self):
        accept_ride_request(self.driver, self.ride_request.pk)
        other_request = create_ride_request(make_rider("second_rider"), **request_payload())

        with self.assertRaises(DriverNotAvailableError):
            accept_ride_request(self.driver, other_request.pk)

        other_request.refresh_from_db()
        self.assertEqual(other_request.status, RideRequest.OPEN)
        self.assertEqual(Ride.objects.filter(driver=self.driver).count(), 1)

    def test_store_failure_rolls_back_everything(self):
        with patch.object(Ride.objects, "create", side_effect=DatabaseError("disk full")):
            with self.assertRaises(DispatchStoreError):
                accept_ride_request(self.driver, self.ride_request.pk)

        self.ride_request.refresh_from_db()
        self.assertEqual(self.ride_request.status, RideRequest.OPEN)
        self.assertFalse(DriverResponse.objects.exists())
        self.assertEqual(DriverProfile.objects.get(user=self.driver).status, DriverProfile.ONLINE)

        # The request is still up for grabs
        ride = accept_ride_request(self.driver, self.ride_request.pk)
        self.assertEqual(ride.status, Ride.DRIVER_ASSIGNED)


@skipUnlessDBFeature("has_select_for_update")
class ConcurrentAcceptTests(TransactionTestCase):
    """
    Real threads racing for one request; needs a database with row locks.

    Skipped under the default SQLite settings. To run it, point the settings
    at PostgreSQL through POSTGRES_DB (plus POSTGRES_USER, POSTGRES_PASSWORD,
    POSTGRES_HOST and POSTGRES_PORT):

        POSTGRES_DB=dispatch pytest backend/services/matching/tests.py -k Concurrent

    The single-winner rule is also covered sequentially on every backend by
    test_many_sequential_attempts_have_one_winner.
    """

    def test_exactly_one_concurrent_driver_wins(self):
        ride_request = create_ride_request(make_rider(), **request_payload())
        drivers = [make_driver(f"racer_{i}", location=PICKUP) for i in range(8)]
        barrier = threading.Barrier(len(drivers))
        outcomes = []
        outcomes_lock = threading.Lock()

        def attempt(driver):
            try:
                barrier.wait()
                try:
                    accept_ride_request(driver, ride_request.pk)
                    outcome = "won"
                except RideNotAvailableError:
                    outcome = "lost"
                with outcomes_lock:
                    outcomes.append(outcome)
            finally:
                connection.close()

        threads = [threading.Thread(target=attempt, args=(driver,)) for driver in drivers]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        self.assertEqual(outcomes.count("won"), 1)
        self.assertEqual(outcomes.count("lost"), len(drivers) - 1)
        self.assertEqual(Ride.objects.filter(request=ride_request).count(), 1)
        self.assertEqual(DriverProfile.objects.filter(status=DriverProfile.BUSY).count(), 1)

        ride_request.refresh_from_db()
        self.assertEqual(ride_request.status, RideRequest.MATCHED)
