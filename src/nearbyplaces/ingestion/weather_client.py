"""
Weather debug client (OpenWeather current conditions).

Used only for diagnostics: it fetches current weather for a resolved location and
compares the coordinates OpenWeather answers for with the ones we asked about.
A gap above `weather.mismatch_threshold_m` (10 km by default) usually means the
location fed into the app was wrong, so it is flagged in the debug log.
"""

from __future__ import annotations

import logging
import math
from typing import Any

import httpx

from nearbyplaces.config.settings import Settings
from nearbyplaces.core.geo import Coordinate, haversine_m
from nearbyplaces.core.http import describe_http_error, get_json
from nearbyplaces.core.validation import validate_coordinates
from nearbyplaces.diagnostics.debug_log import LocationDebugLog
from nearbyplaces.domain.models import ResolvedLocation, WeatherDebugResult, WeatherSummary
from nearbyplaces.errors import ConfigurationError, RemoteRequestFailed

logger = logging.getLogger(__name__)


def _response_coordinate(data: dict[str, Any]) -> Coordinate | None:
    coord = data.get("coord")
    if not isinstance(coord, dict):
        return None
    lat, lon = coord.get("lat"), coord.get("lon")
    if not all(isinstance(v, (int, float)) and not isinstance(v, bool) for v in (lat, lon)):
        return None
    return Coordinate(latitude=float(lat), longitude=float(lon))


def _summary(data: dict[str, Any]) -> WeatherSummary:
    weather = data.get("weather")
    description = None
    if isinstance(weather, list) and weather and isinstance(weather[0], dict):
        description = weather[0].get("description")
    return WeatherSummary(
        location_name=str(data.get("name") or "Unknown"),
        description=str(description or "No description"),
    )


class WeatherDebugClient:
    """Fetches OpenWeather data and records request/response diagnostics."""

    def __init__(self, settings: Settings, debug_log: LocationDebugLog):
        self._settings = settings
        self._debug = debug_log

    async def get_weather_with_debug(self, location: ResolvedLocation) -> WeatherDebugResult:
        """Return current weather for `location` plus coordinate-mismatch diagnostics.

        Raises:
            RemoteRequestFailed: On transport, HTTP or decoding failures.
            ConfigurationError: If no API key is configured.
        """
        cfg = self._settings.weather
        if not cfg.api_key:
            raise ConfigurationError("OpenWeather API key is not configured. Set OPENWEATHER_API_KEY.")

        requested = location.coordinate
        validation = validate_coordinates(requested.latitude, requested.longitude)
        if validation.errors:
            logger.warning("Requesting weather for a flagged location: %s", "; ".join(validation.errors))
        url = f"{cfg.base_url}/weather"
        params = {
            "lat": requested.latitude,
            "lon": requested.longitude,
            "appid": cfg.api_key,
            "units": cfg.units,
        }

        self._debug.record(
            "weather_request",
            requested,
            address=location.address,
            messages=[f"Requesting weather for: {requested.latitude}, {requested.longitude}", *validation.errors],
        )

        try:
            data = await get_json(url, params=params, timeout_seconds=self._settings.app.http_timeout_seconds)
        except (httpx.HTTPError, ValueError) as exc:
            status, detail = describe_http_error(exc)
            logger.error("Weather API error: status=%s detail=%s", status, detail)
            self._debug.record("weather_error", requested, messages=[f"Weather request failed: {detail}"])
            raise RemoteRequestFailed(f"Weather request failed: {detail}", status_code=status) from exc

        if not isinstance(data, dict):
            data = {}

        response_coordinate = _response_coordinate(data)
        distance = haversine_m(requested, response_coordinate) if response_coordinate else float("nan")
        known = not math.isnan(distance)
        mismatch = known and distance > cfg.mismatch_threshold_m
        summary = _summary(data)

        messages = []
        if mismatch:
            messages.append(
                f"WARNING: Coordinate mismatch! Requested: {requested.latitude}, {requested.longitude} "
                f"Got: {response_coordinate.latitude}, {response_coordinate.longitude} "
                f"({round(distance / 1000)}km difference)"
            )
            logger.warning("Weather coordinates differ from request by %.0fm", distance)

        self._debug.record(
            "weather_response",
            response_coordinate,
            address=str(data["name"]) if data.get("name") else None,
            weather=summary,
            messages=messages,
        )

        return WeatherDebugResult(
            request_url=url,
            request_params={**params, "appid": "***"},
            requested_coordinate=requested,
            response_coordinate=response_coordinate,
            coordinate_distance_m=round(distance) if known else -1,
            coordinates_mismatch=mismatch,
            summary=summary,
            data=data,
        )
