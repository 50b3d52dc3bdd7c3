"""Common utility functions."""

from .geo import (
    calculate_distance,
    encode_geohash,
    geohash_precision_for_radius,
    get_covering_geohashes,
)
from .config import dispatch_setting

__all__ = [
    "calculate_distance",
    "encode_geohash",
    "geohash_precision_for_radius",
    "get_covering_geohashes",
    "dispatch_setting",
]
