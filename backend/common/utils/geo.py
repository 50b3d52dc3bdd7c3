"""
Geographic utility functions.

This module provides the geospatial calculations behind fare estimates and
the proximity search over open ride requests.

Proximity queries are answered in two passes:
    1. Coarse: every ride request stores the geohash of its pickup point. The
       set of geohash cells covering the search circle is computed here and
       turned into indexed prefix lookups by the caller.
    2. Exact: candidates are filtered with the Haversine distance.
"""

import math
from math import radians, cos, sin, asin, sqrt
from typing import Set, Tuple

EARTH_RADIUS_METERS = 6371000
METERS_PER_DEGREE = 111000.0

# Base32 alphabet for geohash
_BASE32 = "0123456789bcdefghjkmnpqrstuvwxyz"

# Grid sampling resolution used by get_covering_geohashes
_COVER_STEPS = 3
_MAX_COVER_PRECISION = 8


def calculate_distance(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """
    Calculate distance between two points in meters using Haversine formula.

    Args:
        lat1: Latitude of first point
        lon1: Longitude of first point
        lat2: Latitude of second point
        lon2: Longitude of second point

    Returns:
        Distance in meters
    """
    lat1, lon1, lat2, lon2 = map(radians, [float(lat1), float(lon1), float(lat2), float(lon2)])
    dlat = lat2 - lat1
    dlon = lon2 - lon1
    a = sin(dlat / 2) ** 2 + cos(lat1) * cos(lat2) * sin(dlon / 2) ** 2
    c = 2 * asin(min(1.0, sqrt(a)))
    return c * EARTH_RADIUS_METERS


def encode_geohash(lat: float, lon: float, precision: int = 7) -> str:
    """
    Encode latitude/longitude to geohash string.

    Args:
        lat: Latitude (-90 to 90)
        lon: Longitude (-180 to 180)
        precision: Number of characters (1-12)

    Returns:
        Geohash string
    """
    lat, lon = float(lat), float(lon)
    lat_lo, lat_hi = -90.0, 90.0
    lon_lo, lon_hi = -180.0, 180.0

    chars = []
    value = 0
    bit_count = 0
    even_bit = True  # bits alternate lon, lat, lon, ...

    while len(chars) < precision:
        if even_bit:
            mid = (lon_lo + lon_hi) / 2
            if lon >= mid:
                value = (value << 1) | 1
                lon_lo = mid
            else:
                value <<= 1
                lon_hi = mid
        else:
            mid = (lat_lo + lat_hi) / 2
            if lat >= mid:
                value = (value << 1) | 1
                lat_lo = mid
            else:
                value <<= 1
                lat_hi = mid

        even_bit = not even_bit
        bit_count += 1

        if bit_count == 5:
            chars.append(_BASE32[value])
            value = 0
            bit_count = 0

    return "".join(chars)


def geohash_cell_size(precision: int) -> Tuple[float, float]:
    """Return (lat_height, lon_width) in degrees of a geohash cell."""
    bits = 5 * precision
    lon_bits = (bits + 1) // 2
    lat_bits = bits // 2
    return 180.0 / (2 ** lat_bits), 360.0 / (2 ** lon_bits)


def _sample_offsets(lat: float, radius_meters: float) -> Tuple[float, float]:
    lat_offset = radius_meters / METERS_PER_DEGREE
    lon_scale = max(abs(math.cos(math.radians(lat))), 0.01)
    lon_offset = min(radius_meters / (METERS_PER_DEGREE * lon_scale), 180.0)
    return lat_offset, lon_offset


def geohash_precision_for_radius(lat: float, radius_meters: float) -> int:
    """
    Pick the finest geohash precision whose cells are still wide enough for
    get_covering_geohashes to sample every cell the search circle touches.
    """
    lat_offset, lon_offset = _sample_offsets(float(lat), float(radius_meters))
    lat_spacing = lat_offset / _COVER_STEPS
    lon_spacing = lon_offset / _COVER_STEPS

    for precision in range(_MAX_COVER_PRECISION, 0, -1):
        cell_height, cell_width = geohash_cell_size(precision)
        if cell_height >= lat_spacing and cell_width >= lon_spacing:
            return precision
    return 1


def get_covering_geohashes(lat: float, lon: float, radius_meters: float, precision: int = 5) -> Set[str]:
    """
    Get all geohash cells that cover the circular area around a point.

    Args:
        lat: Center latitude
        lon: Center longitude
        radius_meters: Search radius in meters
        precision: Geohash precision

    Returns:
        Set of geohash strings covering the area
    """
    lat, lon = float(lat), float(lon)
    lat_offset, lon_offset = _sample_offsets(lat, float(radius_meters))

    geohashes = set()

    # Sample points in a grid pattern over the bounding box
    for lat_step in range(-_COVER_STEPS, _COVER_STEPS + 1):
        for lon_step in range(-_COVER_STEPS, _COVER_STEPS + 1):
            sample_lat = max(-90.0, min(90.0, lat + (lat_step * lat_offset / _COVER_STEPS)))
            sample_lon = lon + (lon_step * lon_offset / _COVER_STEPS)
            # wrap across the antimeridian
            sample_lon = ((sample_lon + 180.0) % 360.0) - 180.0
            geohashes.add(encode_geohash(sample_lat, sample_lon, precision))

    return geohashes
