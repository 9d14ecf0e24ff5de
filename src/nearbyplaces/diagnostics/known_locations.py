"""
Known-location weather check.

Pins the resolver to a few well-known cities in turn and fetches weather for each,
so a tester can confirm the weather endpoint answers for the coordinates sent.
Per-city failures are logged and reported; the run never raises.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from nearbyplaces.domain.models import WeatherDebugResult
from nearbyplaces.ingestion.weather_client import WeatherDebugClient
from nearbyplaces.location.resolver import LocationResolver

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class KnownLocation:
    name: str
    latitude: float
    longitude: float


KNOWN_LOCATIONS: tuple[KnownLocation, ...] = (
    KnownLocation("New York City", 40.7128, -74.006),
    KnownLocation("Los Angeles", 34.0522, -118.2437),
    KnownLocation("London", 51.5074, -0.1278),
)


@dataclass(frozen=True)
class KnownLocationCheck:
    location: KnownLocation
    result: WeatherDebugResult | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.result is not None


async def run_known_location_checks(
    resolver: LocationResolver,
    weather: WeatherDebugClient,
    locations: tuple[KnownLocation, ...] = KNOWN_LOCATIONS,
) -> list[KnownLocationCheck]:
    checks = []
    for known in locations:
        try:
            location = resolver.set_manual_location(known.latitude, known.longitude, known.name)
            result = await weather.get_weather_with_debug(location)
        except Exception as exc:
            logger.error("Known-location check failed for %s: %s", known.name, exc)
            checks.append(KnownLocationCheck(location=known, error=str(exc) or exc.__class__.__name__))
            continue
        checks.append(KnownLocationCheck(location=known, result=result))
    return checks
