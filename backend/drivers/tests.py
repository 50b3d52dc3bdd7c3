from django.test import TestCase
from rest_framework.test import APIRequestFactory, force_authenticate

from common.testing import NEAR_PICKUP, make_driver, make_rider, request_payload
from drivers.models import DriverProfile
from drivers.views import (
    DriverCurrentRideView,
    DriverLocationUpdateView,
    DriverStatusView,
    NearbyRequestsView,
)
from services.matching import accept_ride_request
from services.ride_management import create_ride_request


class DriverViewTests(TestCase):
    def setUp(self):
        self.factory = APIRequestFactory()
        self.driver = make_driver(status=DriverProfile.OFFLINE, location=None)

    def _call(self, view_class, method, path, data=None, user=None, **extra):
        request = getattr(self.factory, method)(path, data, **extra)
        force_authenticate(request, user=user or self.driver)
        return view_class.as_view()(request)

    def _profile(self):
        return DriverProfile.objects.get(user=self.driver)

    def test_location_update_brings_driver_online(self):
        response = self._call(
            DriverLocationUpdateView, "post", "/api/driver/location/",
            {"latitude": NEAR_PICKUP[0], "longitude": NEAR_PICKUP[1]}, format="json",
        )

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["status"], DriverProfile.ONLINE)
        profile = self._profile()
        self.assertEqual(profile.status, DriverProfile.ONLINE)
        self.assertAlmostEqual(float(profile.current_latitude), NEAR_PICKUP[0])

    def test_location_update_keeps_busy_driver_busy(self):
        DriverProfile.objects.filter(user=self.driver).update(status=DriverProfile.BUSY)

        response = self._call(
            DriverLocationUpdateView, "post", "/api/driver/location/",
            {"latitude": 23.8, "longitude": 90.4}, format="json",
        )

        self.assertEqual(response.status_code, 200)
        self.assertEqual(self._profile().status, DriverProfile.BUSY)

    def test_location_out_of_range(self):
        response = self._call(
            DriverLocationUpdateView, "post", "/api/driver/location/",
            {"latitude": 123, "longitude": 90.4}, format="json",
        )
        self.assertEqual(response.status_code, 400)

    def test_status_toggle(self):
        response = self._call(DriverStatusView, "put", "/api/driver/status/", {"status": "online"}, format="json")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(self._profile().status, DriverProfile.ONLINE)

        response = self._call(DriverStatusView, "get", "/api/driver/status/")
        self.assertEqual(response.data["status"], DriverProfile.ONLINE)

    def test_status_cannot_be_set_to_busy(self):
        response = self._call(DriverStatusView, "put", "/api/driver/status/", {"status": "busy"}, format="json")
        self.assertEqual(response.status_code, 400)

    def test_busy_driver_cannot_go_offline(self):
        DriverProfile.objects.filter(user=self.driver).update(status=DriverProfile.BUSY)

        response = self._call(DriverStatusView, "put", "/api/driver/status/", {"status": "offline"}, format="json")

        self.assertEqual(response.status_code, 409)
        self.assertEqual(response.data["error"], "driver_not_available")
        self.assertEqual(self._profile().status, DriverProfile.BUSY)

    def test_riders_are_forbidden(self):
        response = self._call(DriverStatusView, "get", "/api/driver/status/", user=make_rider())
        self.assertEqual(response.status_code, 403)

    def test_nearby_requests_lists_open_requests(self):
        ride_request = create_ride_request(make_rider(), **request_payload())

        response = self._call(
            NearbyRequestsView, "get", "/api/driver/nearby-requests/",
            {"latitude": NEAR_PICKUP[0], "longitude": NEAR_PICKUP[1], "radius": 5000},
        )

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["count"], 1)
        item = response.data["requests"][0]
        self.assertEqual(item["request_id"], ride_request.pk)
        self.assertEqual(item["rider_name"], "Rider")
        self.assertEqual(item["estimated_fare"], ride_request.estimated_fare)
        self.assertIn("distance_meters", item)

    def test_nearby_requires_location(self):
        response = self._call(NearbyRequestsView, "get", "/api/driver/nearby-requests/", {"latitude": 23.8})
        self.assertEqual(response.status_code, 400)

    def test_nearby_radius_limit(self):
        response = self._call(
            NearbyRequestsView, "get", "/api/driver/nearby-requests/",
            {"latitude": 23.8, "longitude": 90.4, "radius": 999999},
        )
        self.assertEqual(response.status_code, 400)

    def test_current_ride(self):
        response = self._call(DriverCurrentRideView, "get", "/api/driver/current-ride/")
        self.assertEqual(response.status_code, 404)

        ride_request = create_ride_request(make_rider(), **request_payload())
        DriverProfile.objects.filter(user=self.driver).update(status=DriverProfile.ONLINE)
        ride = accept_ride_request(self.driver, ride_request.pk)

        response = self._call(DriverCurrentRideView, "get", "/api/driver/current-ride/")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["id"], ride.pk)
        self.assertEqual(response.data["status"], "driver_assigned")
