from math import cos, radians, sin

from django.test import SimpleTestCase

from common.testing import DROPOFF, PICKUP
from services.ride_management import DriverNotAvailableError, RideNotAvailableError
from .responses import error_response
from .geo import (
    calculate_distance,
    encode_geohash,
    geohash_precision_for_radius,
    get_covering_geohashes,
)


class DistanceTests(SimpleTestCase):
    def test_same_point_is_zero(self):
        self.assertEqual(calculate_distance(*PICKUP, *PICKUP), 0)

    def test_dhaka_trip_distance(self):
        meters = calculate_distance(*PICKUP, *DROPOFF)
        self.assertAlmostEqual(meters, 3601, delta=5)

    def test_accepts_decimal_strings(self):
        self.assertAlmostEqual(
            calculate_distance("23.8103", "90.4125", "23.7800", "90.4000"),
            calculate_distance(*PICKUP, *DROPOFF),
        )


class GeohashTests(SimpleTestCase):
    def test_encode_known_value(self):
        self.assertEqual(encode_geohash(57.64911, 10.40744, 11), "u4pruydqqvj")

    def test_encode_prefix_is_stable(self):
        full = encode_geohash(*PICKUP, precision=7)
        self.assertEqual(encode_geohash(*PICKUP, precision=5), full[:5])

    def test_precision_for_default_radius(self):
        self.assertEqual(geohash_precision_for_radius(PICKUP[0], 5000), 5)

    def test_precision_gets_coarser_for_larger_radius(self):
        self.assertLess(
            geohash_precision_for_radius(PICKUP[0], 50000),
            geohash_precision_for_radius(PICKUP[0], 500),
        )

    def test_covering_cells_contain_points_near_the_edge(self):
        radius = 5000
        precision = geohash_precision_for_radius(PICKUP[0], radius)
        cells = get_covering_geohashes(*PICKUP, radius, precision)

        for bearing in range(0, 360, 30):
            distance = radius * 0.99
            dlat = distance * cos(radians(bearing)) / 111195.0
            dlon = distance * sin(radians(bearing)) / (111195.0 * cos(radians(PICKUP[0])))
            point = (PICKUP[0] + dlat, PICKUP[1] + dlon)
            self.assertIn(encode_geohash(*point, precision=precision), cells, msg=f"bearing {bearing}")


class ErrorResponseTests(SimpleTestCase):
    def test_conflict_uses_error_status_and_code(self):
        response = error_response(RideNotAvailableError())

        self.assertEqual(response.status_code, 409)
        self.assertEqual(response.data, {
            "success": False,
            "error": "ride_not_available",
            "message": RideNotAvailableError.default_message,
        })

    def test_custom_message_is_passed_through(self):
        response = error_response(DriverNotAvailableError("Driver already has another active ride"))

        self.assertEqual(response.status_code, 409)
        self.assertEqual(response.data["error"], "driver_not_available")
        self.assertEqual(response.data["message"], "Driver already has another active ride")
