"""
API routes.

Endpoints:
- GET    `/api/location`: resolve the current location (live fix, cache, last known).
- POST   `/api/location/manual`: install a manual location.
- GET    `/api/places/nearby`: ranked POI search around a coordinate or the resolved location.
- GET    `/api/places/{place_id}`: single place lookup (404 when absent).
- GET    `/api/debug/weather`: weather + coordinate diagnostics for the current location.
- POST   `/api/debug/known-locations`: weather check against well-known cities.
- GET    `/api/debug/report`, `/api/debug/export`; DELETE `/api/debug/log`.
"""

from __future__ import annotations

import asyncio
import contextlib
import json
from functools import lru_cache
from typing import Any

from fastapi import APIRouter, HTTPException, Query, Request
from fastapi.responses import PlainTextResponse
from pydantic import BaseModel

from nearbyplaces.config.settings import get_settings
from nearbyplaces.core.cancellation import CancellationToken
from nearbyplaces.core.geo import Coordinate
from nearbyplaces.core.validation import validate_coordinates
from nearbyplaces.diagnostics.known_locations import run_known_location_checks
from nearbyplaces.domain.models import Place, ResolvedLocation, SearchOptions, WeatherDebugResult
from nearbyplaces.errors import (
    ConfigurationError,
    InvalidCoordinates,
    LocationUnavailable,
    RemoteRequestFailed,
    RequestCancelled,
)
from nearbyplaces.services import Services, build_services

router = APIRouter()

DISCONNECT_POLL_SECONDS = 0.25


class ManualLocationRequest(BaseModel):
    latitude: float
    longitude: float
    label: str | None = None


@lru_cache
def _services() -> Services:
    return build_services(get_settings())


def _error(status_code: int, code: str, exc: Exception) -> HTTPException:
    return HTTPException(status_code=status_code, detail={"code": code, "message": str(exc)})


async def _resolve(services: Services) -> ResolvedLocation:
    try:
        return await services.resolver.resolve()
    except LocationUnavailable as e:
        raise _error(503, "LOCATION_UNAVAILABLE", e) from e


async def _watch_disconnect(request: Request, token: CancellationToken) -> None:
    while not token.cancelled:
        if await request.is_disconnected():
            token.cancel()
            return
        await asyncio.sleep(DISCONNECT_POLL_SECONDS)


@router.get("/api/location", response_model=ResolvedLocation)
async def get_location() -> ResolvedLocation:
    """Resolve the current location through the fallback chain."""
    return await _resolve(_services())


@router.post("/api/location/manual")
async def post_manual_location(body: ManualLocationRequest) -> dict[str, Any]:
    """Install a manual location; range problems come back as warnings, not errors."""
    services = _services()
    validation = validate_coordinates(body.latitude, body.longitude)
    try:
        location = services.resolver.set_manual_location(body.latitude, body.longitude, body.label)
    except InvalidCoordinates as e:
        raise _error(400, "INVALID_COORDINATES", e) from e
    return {
        "location": location.model_dump(mode="json"),
        "validation": {"valid": validation.valid, "errors": validation.errors},
    }


@router.get("/api/places/nearby", response_model=list[Place])
async def get_nearby_places(
    request: Request,
    category: str | None = None,
    radius: float | None = Query(default=None, gt=0),
    limit: int | None = None,
    lat: float | None = None,
    lon: float | None = None,
) -> list[Place]:
    """Search POIs near `lat`/`lon` (or the resolved location), closest first."""
    services = _services()
    if lat is not None and lon is not None:
        origin = Coordinate(latitude=lat, longitude=lon)
    else:
        origin = (await _resolve(services)).coordinate

    defaults = services.places.default_options()
    options = SearchOptions(
        category=category or defaults.category,
        radius=radius if radius is not None else defaults.radius,
        limit=limit if limit is not None else defaults.limit,
    )

    token = CancellationToken()
    watcher = asyncio.create_task(_watch_disconnect(request, token))
    try:
        return await services.places.search(origin, options, cancel=token)
    except RequestCancelled as e:
        raise _error(499, "REQUEST_CANCELLED", e) from e
    except RemoteRequestFailed as e:
        raise _error(502, "REMOTE_REQUEST_FAILED", e) from e
    except ConfigurationError as e:
        raise _error(500, "CONFIGURATION_ERROR", e) from e
    finally:
        watcher.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await watcher


@router.get("/api/places/{place_id}", response_model=Place)
async def get_place(place_id: str) -> Place:
    """Return one place by id, or 404."""
    place = await _services().places.get_place_details(place_id)
    if place is None:
        raise HTTPException(status_code=404, detail={"code": "NOT_FOUND", "message": f"No place for id {place_id}"})
    return place


@router.get("/api/debug/weather", response_model=WeatherDebugResult)
async def get_debug_weather() -> WeatherDebugResult:
    """Fetch weather for the current location and report coordinate mismatches."""
    services = _services()
    location = await _resolve(services)
    try:
        return await services.weather.get_weather_with_debug(location)
    except RemoteRequestFailed as e:
        raise _error(502, "REMOTE_REQUEST_FAILED", e) from e
    except ConfigurationError as e:
        raise _error(500, "CONFIGURATION_ERROR", e) from e


@router.post("/api/debug/known-locations")
async def post_known_locations() -> dict[str, Any]:
    services = _services()
    checks = await run_known_location_checks(services.resolver, services.weather)
    return {
        "checks": [
            {
                "name": c.location.name,
                "ok": c.ok,
                "error": c.error,
                "result": c.result.model_dump(mode="json") if c.result else None,
            }
            for c in checks
        ]
    }


@router.get("/api/debug/report", response_class=PlainTextResponse)
def get_debug_report() -> str:
    return _services().debug_log.report()


@router.get("/api/debug/export")
def get_debug_export() -> list[dict[str, Any]]:
    return json.loads(_services().debug_log.export())


@router.delete("/api/debug/log")
def delete_debug_log() -> dict[str, Any]:
    _services().debug_log.clear()
    return {"cleared": True}
