"""
Domain models (Pydantic).

These types represent the stable "contract" between layers:
- resolver output (`ResolvedLocation`)
- places query input/output (`SearchOptions`, `Place`)
- diagnostics (`DebugLogEntry`, `WeatherSummary`, `WeatherDebugResult`)

All of them are frozen: a newer reading replaces an old instance instead of
mutating it.
"""

from __future__ import annotations

import math
from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from nearbyplaces.core.geo import Coordinate
from nearbyplaces.core.time import utc_now

LocationSource = Literal["gps", "cache", "last-known", "manual"]

MAX_SEARCH_LIMIT = 50


class ResolvedLocation(BaseModel):
    """A location produced by the resolver (or a manual override)."""

    model_config = ConfigDict(frozen=True)

    coordinate: Coordinate
    accuracy: float | None = None
    address: str | None = None
    timestamp: datetime = Field(default_factory=utc_now)
    source: LocationSource


class SearchOptions(BaseModel):
    """Places query knobs. `radius` is a hint only; the remote API biases, it does not filter."""

    model_config = ConfigDict(frozen=True)

    category: str = "restaurant"
    radius: float = 1000
    limit: int = 20

    @field_validator("category", mode="before")
    @classmethod
    def _default_category(cls, value: Any) -> Any:
        if value is None or (isinstance(value, str) and not value.strip()):
            return "restaurant"
        return value

    @field_validator("limit", mode="before")
    @classmethod
    def _clamp_limit(cls, value: Any) -> int:
        if value is None:
            return 20
        try:
            limit = math.floor(float(value))
        except (TypeError, ValueError, OverflowError) as exc:
            raise ValueError(f"limit must be a finite number, got {value!r}") from exc
        return max(1, min(MAX_SEARCH_LIMIT, limit))


class Place(BaseModel):
    """One places-API result row.

    `coordinate` and `distance` are None when the remote row had no usable center.
    `rating`, `price_level` and `photos` are never filled by the Mapbox backend.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    category: str
    coordinate: Coordinate | None = None
    address: str = ""
    distance: float | None = None
    rating: float | None = None
    price_level: int | None = None
    photos: list[str] | None = None


class WeatherSummary(BaseModel):
    model_config = ConfigDict(frozen=True)

    location_name: str = "Unknown"
    description: str = "No description"


class DebugLogEntry(BaseModel):
    """One diagnostics event recorded by `LocationDebugLog`."""

    model_config = ConfigDict(frozen=True)

    timestamp: datetime
    source: str
    coordinate: Coordinate
    accuracy: float | None = None
    address: str | None = None
    weather: WeatherSummary | None = None
    messages: list[str] = Field(default_factory=list)


class WeatherDebugResult(BaseModel):
    """OpenWeather payload plus request/response coordinate diagnostics."""

    model_config = ConfigDict(frozen=True)

    request_url: str
    request_params: dict[str, Any]
    requested_coordinate: Coordinate
    response_coordinate: Coordinate | None = None
    coordinate_distance_m: int = -1
    coordinates_mismatch: bool = False
    summary: WeatherSummary = Field(default_factory=WeatherSummary)
    data: dict[str, Any] = Field(default_factory=dict)
