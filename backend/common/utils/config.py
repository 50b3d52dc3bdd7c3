"""Access to the RIDE_DISPATCH settings block with built-in defaults."""

from django.conf import settings

DEFAULTS = {
    "REQUEST_TTL_SECONDS": 300,
    "DEFAULT_SEARCH_RADIUS_METERS": 5000,
    "MAX_SEARCH_RADIUS_METERS": 50000,
    "BASE_FARE": 50,
    "PER_KM_FARE": 15,
    "MINUTES_PER_KM": 3,
    "COMPLETED_SUMMARY_WINDOW_SECONDS": 120,
    "REQUEST_SWEEP_INTERVAL_SECONDS": 60,
    "PICKUP_GEOHASH_PRECISION": 7,
}


def dispatch_setting(name: str):
    """Read one dispatch tunable, falling back to DEFAULTS."""
    if name not in DEFAULTS:
        raise KeyError(f"Unknown dispatch setting: {name}")
    overrides = getattr(settings, "RIDE_DISPATCH", {}) or {}
    return overrides.get(name, DEFAULTS[name])
