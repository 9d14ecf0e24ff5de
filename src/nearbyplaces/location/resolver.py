"""
Location resolver.

Acquires the user's position through an ordered fallback chain:

1. permission check + live fix (validated, then best-effort reverse geocoding)
2. the last resolved location, if it is still fresh (`cache`)
3. the platform's last-known position (`last-known`)

Each attempt returns an `AttemptOutcome`; the resolver stops at the first success.
Intermediate failures are logged and absorbed. Only when every attempt fails does
`resolve()` raise `LocationUnavailable`, carrying the live-fix error.

`set_manual_location()` installs an explicit position (e.g. a tester's pin) and
becomes the basis for later cache fallbacks.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Awaitable, Callable

from nearbyplaces.config.settings import LocationSettings
from nearbyplaces.core.geo import Coordinate, has_location_changed, haversine_m
from nearbyplaces.core.time import age_seconds, utc_now
from nearbyplaces.core.validation import NOT_NUMERIC, CoordinateValidation, validate_coordinates
from nearbyplaces.diagnostics.debug_log import LocationDebugLog
from nearbyplaces.domain.models import ResolvedLocation
from nearbyplaces.errors import InvalidCoordinates, LocationUnavailable, PermissionDenied
from nearbyplaces.location.platform import PERMISSION_GRANTED, LocationProvider

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AttemptOutcome:
    """Result of one fallback attempt: a location, or the error that stopped it."""

    location: ResolvedLocation | None = None
    error: BaseException | None = None

    @property
    def ok(self) -> bool:
        return self.location is not None


Attempt = Callable[[], Awaitable[AttemptOutcome]]


def _error_message(exc: BaseException) -> str:
    return str(exc) or exc.__class__.__name__


class LocationResolver:
    """Resolves a `ResolvedLocation` from a `LocationProvider` with fallbacks."""

    def __init__(
        self,
        provider: LocationProvider,
        debug_log: LocationDebugLog,
        settings: LocationSettings,
        *,
        clock: Callable[[], datetime] = utc_now,
    ):
        self._provider = provider
        self._debug = debug_log
        self._settings = settings
        self._clock = clock
        self._current: ResolvedLocation | None = None

    @property
    def current_location(self) -> ResolvedLocation | None:
        """Last location installed by a live fix or manual override (last writer wins)."""
        return self._current

    def _attempts(self) -> list[Attempt]:
        return [self._attempt_live_fix, self._attempt_cache, self._attempt_last_known]

    async def resolve(self) -> ResolvedLocation:
        self._debug.record("get_current_location", messages=["Starting location request"])

        attempts = self._attempts()
        primary = await attempts[0]()
        if primary.ok:
            return primary.location

        original = primary.error or RuntimeError("Location request failed")
        logger.warning("Live location failed: %s; trying fallbacks", _error_message(original))
        self._debug.record("location_error", messages=[f"Location request failed: {_error_message(original)}"])
        self._debug.record("fallback_attempt", messages=[f"Trying fallback due to: {_error_message(original)}"])

        for attempt in attempts[1:]:
            outcome = await attempt()
            if outcome.ok:
                return outcome.location

        self._debug.record("location_unavailable", messages=[f"All location sources failed: {_error_message(original)}"])
        logger.error("Location unavailable: %s", _error_message(original))
        raise LocationUnavailable(original) from original

    async def _check_permission(self) -> tuple[bool, str]:
        try:
            status = str(await self._provider.request_permission())
        except Exception as exc:
            self._debug.record("permission_error", messages=[f"Permission request failed: {_error_message(exc)}"])
            return False, "error"

        self._debug.record("permission_request", messages=[f"Permission status: {status}"])
        return status == PERMISSION_GRANTED, status

    async def _attempt_live_fix(self) -> AttemptOutcome:
        granted, status = await self._check_permission()
        if not granted:
            return AttemptOutcome(error=PermissionDenied(status))

        self._debug.record("permission_check", messages=["Permission granted, requesting location"])
        try:
            fix = await asyncio.wait_for(
                self._provider.get_current_position(
                    accuracy=self._settings.live_fix_accuracy,
                    time_interval_s=self._settings.live_fix_time_interval_seconds,
                    distance_interval_m=self._settings.live_fix_distance_interval_m,
                ),
                timeout=self._settings.live_fix_timeout_seconds,
            )
        except asyncio.TimeoutError:
            return AttemptOutcome(
                error=TimeoutError(
                    f"Timed out waiting for a location fix after {self._settings.live_fix_timeout_seconds:g}s"
                )
            )
        except Exception as exc:
            return AttemptOutcome(error=exc)

        coordinate = fix.coordinate
        validation = validate_coordinates(coordinate.latitude, coordinate.longitude)
        self._debug.record("gps_location", coordinate, accuracy=fix.accuracy, messages=validation.errors)
        if not validation.valid:
            return AttemptOutcome(error=InvalidCoordinates(validation.errors))
        if validation.warnings:
            logger.warning("Live fix flagged: %s", "; ".join(validation.warnings))

        address = await self._reverse_geocode(coordinate)
        location = ResolvedLocation(
            coordinate=coordinate,
            accuracy=fix.accuracy or None,
            address=address,
            timestamp=self._clock(),
            source="gps",
        )
        self._note_movement(coordinate)
        self._current = location
        logger.info("Resolved live location %.6f, %.6f", coordinate.latitude, coordinate.longitude)
        return AttemptOutcome(location=location)

    def _note_movement(self, coordinate: Coordinate) -> None:
        previous = self._current
        threshold = self._settings.change_threshold_m
        if previous is None or not has_location_changed(previous.coordinate, coordinate, threshold):
            return
        moved = haversine_m(previous.coordinate, coordinate)
        logger.info("Location moved %.0fm since the previous %s location", moved, previous.source)
        self._debug.record(
            "location_changed",
            coordinate,
            messages=[f"Moved {moved:.0f}m from {previous.coordinate.latitude:.6f}, {previous.coordinate.longitude:.6f}"],
        )

    async def _reverse_geocode(self, coordinate: Coordinate) -> str | None:
        try:
            addresses = await self._provider.reverse_geocode(coordinate)
        except Exception as exc:
            self._debug.record(
                "reverse_geocode_error",
                coordinate,
                messages=[f"Reverse geocoding failed: {_error_message(exc)}"],
            )
            return None

        address = addresses[0].label() if addresses else ""
        self._debug.record(
            "reverse_geocode",
            coordinate,
            address=address or None,
            messages=[] if address else ["Failed to get readable address"],
        )
        return address or None

    async def _attempt_cache(self) -> AttemptOutcome:
        current = self._current
        max_age = self._settings.cache_max_age_seconds
        if current is None:
            self._debug.record("cache_miss", messages=["No cached location"])
            return AttemptOutcome(error=LookupError("no cached location"))

        age = age_seconds(current.timestamp, now=self._clock())
        if age >= max_age:
            self._debug.record(
                "cache_miss",
                current.coordinate,
                messages=[f"Cached location is stale ({age:.0f}s old, limit {max_age:g}s)"],
            )
            return AttemptOutcome(error=LookupError("cached location is stale"))

        self._debug.record(
            "cache_hit",
            current.coordinate,
            address=current.address,
            messages=["Using cached location"],
        )
        logger.info("Using cached location (%.0fs old)", age)
        return AttemptOutcome(location=current.model_copy(update={"source": "cache"}))

    async def _attempt_last_known(self) -> AttemptOutcome:
        try:
            fix = await self._provider.get_last_known_position(
                max_age_s=self._settings.last_known_max_age_seconds,
                required_accuracy_m=self._settings.last_known_required_accuracy_m,
            )
        except Exception as exc:
            self._debug.record("last_known_error", messages=[f"Last known location failed: {_error_message(exc)}"])
            return AttemptOutcome(error=exc)

        if fix is None:
            self._debug.record("last_known_miss", messages=["No last known location available"])
            return AttemptOutcome(error=LookupError("no last known location"))

        self._debug.record("last_known", fix.coordinate, accuracy=fix.accuracy, messages=["Using last known location"])
        logger.info("Using last known location")
        return AttemptOutcome(
            location=ResolvedLocation(
                coordinate=fix.coordinate,
                accuracy=fix.accuracy or None,
                timestamp=fix.timestamp or self._clock(),
                source="last-known",
            )
        )

    def set_manual_location(self, latitude: Any, longitude: Any, label: str | None = None) -> ResolvedLocation:
        """Install an explicit position. Range problems are logged, not enforced.

        Raises:
            InvalidCoordinates: If either value is not a finite number.
        """
        validation = validate_coordinates(latitude, longitude)
        self._log_manual(latitude, longitude, label, validation)
        if NOT_NUMERIC in validation.errors:
            raise InvalidCoordinates(validation.errors)
        if validation.errors:
            logger.warning("Manual location flagged: %s", "; ".join(validation.errors))

        location = ResolvedLocation(
            coordinate=Coordinate(latitude=float(latitude), longitude=float(longitude)),
            address=label,
            timestamp=self._clock(),
            source="manual",
        )
        self._current = location
        return location

    def _log_manual(self, latitude: Any, longitude: Any, label: str | None, validation: CoordinateValidation) -> None:
        try:
            coordinate = Coordinate(latitude=float(latitude), longitude=float(longitude))
        except (TypeError, ValueError):
            coordinate = None
        self._debug.record(
            "manual_location",
            coordinate,
            address=label,
            messages=[*validation.errors, "Manually set location"],
        )
