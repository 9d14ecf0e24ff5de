"""
Platform location services seam.

The resolver talks to the device through `LocationProvider`: a permission prompt,
a live fix, the platform's cached last-known position and reverse geocoding.
Mobile shells, desktop agents and tests each supply their own implementation.

`ConfiguredLocationProvider` is the server/CLI implementation: it reports the
home location from settings and behaves like a device whose permission is
denied when no home location is configured.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Protocol

from nearbyplaces.config.settings import HomeLocationSettings
from nearbyplaces.core.geo import Coordinate
from nearbyplaces.core.time import utc_now

PERMISSION_GRANTED = "granted"
PERMISSION_DENIED = "denied"


@dataclass(frozen=True)
class PositionFix:
    """One platform position reading."""

    coordinate: Coordinate
    accuracy: float | None = None
    timestamp: datetime | None = None


@dataclass(frozen=True)
class ReverseGeocodeAddress:
    city: str | None = None
    region: str | None = None
    country: str | None = None

    def label(self) -> str:
        return ", ".join(part for part in (self.city, self.region, self.country) if part)


class LocationProvider(Protocol):
    async def request_permission(self) -> str:
        """Prompt for foreground location permission; returns the platform status string."""
        ...

    async def get_current_position(
        self,
        *,
        accuracy: str,
        time_interval_s: float,
        distance_interval_m: float,
    ) -> PositionFix: ...

    async def get_last_known_position(
        self,
        *,
        max_age_s: float,
        required_accuracy_m: float,
    ) -> PositionFix | None: ...

    async def reverse_geocode(self, coordinate: Coordinate) -> list[ReverseGeocodeAddress]: ...


class ConfiguredLocationProvider:
    """`LocationProvider` backed by `location.home` settings."""

    def __init__(self, home: HomeLocationSettings):
        self._home = home

    def _configured(self) -> bool:
        return self._home.latitude is not None and self._home.longitude is not None

    def _fix(self) -> PositionFix:
        return PositionFix(
            coordinate=Coordinate(latitude=float(self._home.latitude), longitude=float(self._home.longitude)),
            accuracy=self._home.accuracy_m,
            timestamp=utc_now(),
        )

    async def request_permission(self) -> str:
        return PERMISSION_GRANTED if self._configured() else PERMISSION_DENIED

    async def get_current_position(
        self,
        *,
        accuracy: str,
        time_interval_s: float,
        distance_interval_m: float,
    ) -> PositionFix:
        if not self._configured():
            raise RuntimeError("No home location configured (set NEARBYPLACES_HOME_LAT/LON).")
        return self._fix()

    async def get_last_known_position(
        self,
        *,
        max_age_s: float,
        required_accuracy_m: float,
    ) -> PositionFix | None:
        if not self._configured():
            return None
        accuracy = self._home.accuracy_m
        if accuracy is not None and accuracy > required_accuracy_m:
            return None
        return self._fix()

    async def reverse_geocode(self, coordinate: Coordinate) -> list[ReverseGeocodeAddress]:
        address = ReverseGeocodeAddress(city=self._home.city, region=self._home.region, country=self._home.country)
        return [address] if address.label() else []
