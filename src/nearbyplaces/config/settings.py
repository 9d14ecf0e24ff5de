# src/nearbyplaces/config/settings.py
"""
Application settings (Pydantic).

Settings are loaded from `src/nearbyplaces/config/defaults.yaml`, then optionally overridden by:
- environment variables (e.g., `MAPBOX_TOKEN`, `OPENWEATHER_API_KEY`)
- an external YAML file via `NEARBYPLACES_CONFIG_PATH`

Design rule:
- Endpoints, timeouts and fallback windows live in YAML, not hard-coded in business logic.
"""

from __future__ import annotations

import os
from functools import lru_cache
from importlib import resources
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field

from nearbyplaces.core.env import load_dotenv_if_present


def _read_package_yaml(filename: str) -> dict[str, Any]:
    """Read a YAML file packaged inside `nearbyplaces.config`."""
    text = resources.files("nearbyplaces.config").joinpath(filename).read_text(encoding="utf-8")
    data = yaml.safe_load(text) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Invalid YAML root object for {filename}; expected a mapping.")
    return data


def _read_yaml_file(path: str | Path) -> dict[str, Any]:
    """Read a YAML file from disk and return its mapping root."""
    data = yaml.safe_load(Path(path).read_text(encoding="utf-8")) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Invalid YAML root object for {path}; expected a mapping.")
    return data


class AppSettings(BaseModel):
    name: str = "NearbyPlaces"
    http_timeout_seconds: float = 10
    log_level: str = "INFO"


class DebugSettings(BaseModel):
    enabled: bool = False
    log_capacity: int = Field(50, ge=1)


class HomeLocationSettings(BaseModel):
    """Fixed position reported by the configured location provider."""

    latitude: float | None = None
    longitude: float | None = None
    accuracy_m: float | None = None
    city: str | None = None
    region: str | None = None
    country: str | None = None


class LocationSettings(BaseModel):
    cache_max_age_seconds: float = Field(300, gt=0)
    live_fix_timeout_seconds: float = Field(10, gt=0)
    live_fix_accuracy: str = "balanced"
    live_fix_time_interval_seconds: float = 10
    live_fix_distance_interval_m: float = 100
    last_known_max_age_seconds: float = Field(600, gt=0)
    last_known_required_accuracy_m: float = Field(1000, gt=0)
    change_threshold_m: float = 100
    home: HomeLocationSettings = Field(default_factory=HomeLocationSettings)


class PlacesSettings(BaseModel):
    base_url: str = "https://api.mapbox.com/geocoding/v5/mapbox.places"
    access_token: str | None = None
    default_category: str = "restaurant"
    default_radius_m: float = 1000
    default_limit: int = 20
    types: str = "poi"


class WeatherSettings(BaseModel):
    base_url: str = "https://api.openweathermap.org/data/2.5"
    api_key: str | None = None
    units: str = "metric"
    mismatch_threshold_m: float = 10_000


class Settings(BaseModel):
    app: AppSettings = Field(default_factory=AppSettings)
    debug: DebugSettings = Field(default_factory=DebugSettings)
    location: LocationSettings = Field(default_factory=LocationSettings)
    places: PlacesSettings = Field(default_factory=PlacesSettings)
    weather: WeatherSettings = Field(default_factory=WeatherSettings)


def _truthy(value: str) -> bool:
    return value.strip().lower() in {"1", "true", "yes", "y", "on"}


def _apply_env_overrides(data: dict[str, Any]) -> dict[str, Any]:
    """Overlay selected environment variables onto raw settings payload.

    Note: We intentionally keep this whitelist small to avoid exposing unsafe overrides.
    """
    load_dotenv_if_present()
    data = dict(data)

    log_level = os.getenv("NEARBYPLACES_LOG_LEVEL")
    if log_level:
        data.setdefault("app", {})["log_level"] = log_level

    debug = os.getenv("NEARBYPLACES_DEBUG")
    if debug:
        data.setdefault("debug", {})["enabled"] = _truthy(debug)

    mapbox_token = os.getenv("MAPBOX_TOKEN")
    if mapbox_token:
        data.setdefault("places", {})["access_token"] = mapbox_token

    weather_key = os.getenv("OPENWEATHER_API_KEY")
    if weather_key:
        data.setdefault("weather", {})["api_key"] = weather_key

    home_lat = os.getenv("NEARBYPLACES_HOME_LAT")
    home_lon = os.getenv("NEARBYPLACES_HOME_LON")
    if home_lat and home_lon:
        home = data.setdefault("location", {}).setdefault("home", {})
        home["latitude"] = float(home_lat)
        home["longitude"] = float(home_lon)

    return data


@lru_cache
def get_settings() -> Settings:
    """Load and validate settings (cached)."""
    load_dotenv_if_present()
    config_path = os.getenv("NEARBYPLACES_CONFIG_PATH")
    raw = _read_yaml_file(config_path) if config_path else _read_package_yaml("defaults.yaml")
    raw = _apply_env_overrides(raw)
    return Settings.model_validate(raw)


@lru_cache
def get_logging_config() -> dict[str, Any]:
    """Load logging configuration (cached)."""
    return _read_package_yaml("logging.yaml")
