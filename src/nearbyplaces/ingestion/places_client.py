"""
Places client (Mapbox geocoding, POI search).

This module is responsible only for:
- issuing a proximity-biased POI search around an origin,
- parsing features into `Place` models,
- ranking them by haversine distance from the origin.

Mapbox treats `proximity` as a ranking bias, not a radius filter, so results may lie
outside `SearchOptions.radius`. Rows without a usable `center` keep `coordinate=None`
and `distance=None` and are ranked after every row with a known distance.
"""

from __future__ import annotations

import logging
import math
from typing import Any
from urllib.parse import quote

import httpx

from nearbyplaces.config.settings import Settings
from nearbyplaces.core.cancellation import CancellationToken, run_cancellable
from nearbyplaces.core.geo import Coordinate, haversine_m
from nearbyplaces.core.http import describe_http_error, get_json
from nearbyplaces.core.validation import validate_coordinates
from nearbyplaces.diagnostics.debug_log import LocationDebugLog
from nearbyplaces.domain.models import Place, SearchOptions
from nearbyplaces.errors import ConfigurationError, RemoteRequestFailed, RequestCancelled

logger = logging.getLogger(__name__)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _parse_center(feature: dict[str, Any]) -> Coordinate | None:
    """Mapbox `center` is [lon, lat]."""
    center = feature.get("center")
    if not isinstance(center, (list, tuple)) or len(center) < 2:
        return None
    lon, lat = center[0], center[1]
    if not (_is_number(lat) and _is_number(lon)):
        return None
    return Coordinate(latitude=float(lat), longitude=float(lon))


def parse_feature(feature: dict[str, Any], *, default_category: str, default_id: str = "") -> Place:
    """Map one Mapbox feature to a `Place` (distance unset)."""
    properties = feature.get("properties") or {}
    place_id = feature.get("id")
    name = feature.get("text") or feature.get("place_name") or "Unknown"
    category = properties.get("category") if isinstance(properties, dict) else None
    return Place(
        id=str(place_id if place_id is not None else default_id),
        name=str(name),
        category=str(category or default_category),
        coordinate=_parse_center(feature),
        address=str(feature.get("place_name") or ""),
    )


def rank_by_distance(origin: Coordinate, places: list[Place]) -> list[Place]:
    """Attach distances from `origin` and sort closest-first.

    Unknown distances sort last; ties keep input order (stable sort).
    """
    with_distance = []
    for place in places:
        distance = haversine_m(origin, place.coordinate) if place.coordinate is not None else None
        if distance is not None and math.isnan(distance):
            distance = None
        with_distance.append(place.model_copy(update={"distance": distance}))
    return sorted(with_distance, key=lambda p: (p.distance is None, p.distance or 0.0))


class PlacesClient:
    """Mapbox POI search + detail lookup."""

    def __init__(self, settings: Settings, debug_log: LocationDebugLog):
        self._settings = settings
        self._debug = debug_log

    @property
    def _places(self):
        return self._settings.places

    def _timeout(self) -> float:
        return float(self._settings.app.http_timeout_seconds)

    def _require_token(self) -> str:
        token = self._places.access_token
        if not token:
            raise ConfigurationError("Mapbox access token is not configured. Set MAPBOX_TOKEN.")
        return token

    def default_options(self) -> SearchOptions:
        return SearchOptions(
            category=self._places.default_category,
            radius=self._places.default_radius_m,
            limit=self._places.default_limit,
        )

    async def search(
        self,
        origin: Coordinate,
        options: SearchOptions | None = None,
        *,
        cancel: CancellationToken | None = None,
    ) -> list[Place]:
        """Search POIs near `origin`, ranked closest-first.

        Raises:
            RequestCancelled: If `cancel` fires before the response arrives.
            RemoteRequestFailed: On transport, HTTP or decoding failures.
            ConfigurationError: If no access token is configured.
        """
        options = options or self.default_options()
        token = self._require_token()
        if cancel is not None:
            cancel.raise_if_cancelled()

        # Flagged origins are still searched; the problems go to the log.
        validation = validate_coordinates(origin.latitude, origin.longitude)
        if validation.errors:
            logger.warning("Searching from a flagged origin: %s", "; ".join(validation.errors))

        url = f"{self._places.base_url}/{quote(options.category, safe='')}.json"
        params = {
            "proximity": f"{origin.longitude},{origin.latitude}",
            "access_token": token,
            "limit": options.limit,
            "radius": options.radius,
            "types": self._places.types,
        }

        logger.info(
            "Searching places category=%s near %.4f,%.4f limit=%s",
            options.category,
            origin.latitude,
            origin.longitude,
            options.limit,
        )
        try:
            payload = await run_cancellable(
                get_json(url, params=params, timeout_seconds=self._timeout()),
                cancel,
            )
        except (httpx.HTTPError, ValueError) as exc:
            status, detail = describe_http_error(exc)
            logger.error("Places search error: status=%s detail=%s", status, detail)
            self._debug.record("places_error", origin, messages=[f"Places search failed: {detail}"])
            raise RemoteRequestFailed(f"Failed to search nearby places: {detail}", status_code=status) from exc
        except RequestCancelled:
            logger.info("Places search cancelled")
            self._debug.record("places_cancelled", origin, messages=["Places search cancelled"])
            raise

        features = payload.get("features") if isinstance(payload, dict) else None
        if not isinstance(features, list):
            features = []

        places = [
            parse_feature(f, default_category=options.category)
            for f in features
            if isinstance(f, dict)
        ]
        ranked = rank_by_distance(origin, places)

        missing = sum(1 for p in ranked if p.distance is None)
        messages = [*validation.errors, f"{len(ranked)} {options.category} results"]
        if missing:
            messages.append(f"{missing} results without coordinates")
        self._debug.record("places_search", origin, messages=messages)
        return ranked

    async def get_place_details(self, place_id: str) -> Place | None:
        """Look up one place by id. Never raises; absence and failures both yield None."""
        token = self._places.access_token
        if not token:
            logger.error("Place details skipped: Mapbox access token is not configured")
            return None

        url = f"{self._places.base_url}/{quote(place_id, safe='')}.json"
        params = {"access_token": token, "types": self._places.types, "limit": 1}
        try:
            payload = await get_json(url, params=params, timeout_seconds=self._timeout())
        except Exception as exc:
            _, detail = describe_http_error(exc)
            logger.error("Place details error for %s: %s", place_id, detail)
            return None

        features = payload.get("features") if isinstance(payload, dict) else None
        if not isinstance(features, list) or not features or not isinstance(features[0], dict):
            return None
        return parse_feature(features[0], default_category="poi", default_id=place_id)
