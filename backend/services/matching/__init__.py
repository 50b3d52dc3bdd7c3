"""
Driver-side matching service.

This module handles:
    - Proximity search for open ride requests around a driver
    - Recording driver rejections
    - Race-free acceptance (exactly one driver wins a request)
"""

from .proximity import NearbyRequest, find_nearby_requests, reject_ride_request
from .acceptance import accept_ride_request

__all__ = [
    "NearbyRequest",
    "find_nearby_requests",
    "reject_ride_request",
    "accept_ride_request",
]
