"""
Service wiring.

Entry points (API app, CLI) build one `Services` bundle and pass it around; no
component reaches for a module-level singleton. The debug log and the resolver's
current location are shared by everything in the bundle.
"""

from __future__ import annotations

from dataclasses import dataclass

from nearbyplaces.config.settings import Settings
from nearbyplaces.diagnostics.debug_log import LocationDebugLog
from nearbyplaces.ingestion.places_client import PlacesClient
from nearbyplaces.ingestion.weather_client import WeatherDebugClient
from nearbyplaces.location.platform import ConfiguredLocationProvider, LocationProvider
from nearbyplaces.location.resolver import LocationResolver


@dataclass(frozen=True)
class Services:
    settings: Settings
    debug_log: LocationDebugLog
    resolver: LocationResolver
    places: PlacesClient
    weather: WeatherDebugClient


def build_services(settings: Settings, provider: LocationProvider | None = None) -> Services:
    """Construct the component graph for one process."""
    debug_log = LocationDebugLog(enabled=settings.debug.enabled, capacity=settings.debug.log_capacity)
    provider = provider or ConfiguredLocationProvider(settings.location.home)
    return Services(
        settings=settings,
        debug_log=debug_log,
        resolver=LocationResolver(provider, debug_log, settings.location),
        places=PlacesClient(settings, debug_log),
        weather=WeatherDebugClient(settings, debug_log),
    )
