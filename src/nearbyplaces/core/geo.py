from __future__ import annotations

from dataclasses import dataclass
from math import atan2, cos, isfinite, nan, radians, sin, sqrt

"""
Geospatial helpers.

A tiny geometry layer shared by places ranking, weather mismatch detection and
location-change checks, so every call site uses the same Earth radius.
"""

EARTH_RADIUS_M = 6_371_000


@dataclass(frozen=True)
class Coordinate:
    """A latitude/longitude pair in decimal degrees.

    No range checks here; see `nearbyplaces.core.validation`.
    """

    latitude: float
    longitude: float


NULL_ISLAND = Coordinate(latitude=0.0, longitude=0.0)


def haversine_m(a: Coordinate, b: Coordinate) -> float:
    """Compute great-circle distance in meters between two points.

    Non-finite inputs yield NaN.
    """
    if not all(isfinite(v) for v in (a.latitude, a.longitude, b.latitude, b.longitude)):
        return nan
    lat1 = radians(a.latitude)
    lat2 = radians(b.latitude)
    dlat = radians(b.latitude - a.latitude)
    dlon = radians(b.longitude - a.longitude)

    h = sin(dlat / 2) ** 2 + cos(lat1) * cos(lat2) * sin(dlon / 2) ** 2
    # atan2 form stays finite when rounding pushes h slightly above 1.
    return 2 * EARTH_RADIUS_M * atan2(sqrt(h), sqrt(max(0.0, 1 - h)))


def has_location_changed(old: Coordinate, new: Coordinate, threshold_m: float = 100) -> bool:
    """True when `new` is more than `threshold_m` meters away from `old`."""
    return haversine_m(old, new) > threshold_m
