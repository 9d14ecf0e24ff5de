import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from nearbyplaces.config.settings import get_settings
from nearbyplaces.core.geo import Coordinate
from nearbyplaces.diagnostics.debug_log import LocationDebugLog
from nearbyplaces.errors import InvalidCoordinates, LocationUnavailable, PermissionDenied
from nearbyplaces.location.platform import PositionFix, ReverseGeocodeAddress
from nearbyplaces.location.resolver import LocationResolver

T0 = datetime(2026, 1, 5, 10, 0, tzinfo=timezone.utc)


class FakeClock:
    def __init__(self, now: datetime = T0):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now = self.now + timedelta(seconds=seconds)


class FakeProvider:
    def __init__(
        self,
        *,
        permission="granted",
        fix=None,
        fix_error=None,
        fix_delay=0.0,
        last_known=None,
        last_known_error=None,
        addresses=None,
        reverse_error=None,
    ):
        self.permission = permission
        self.fix = fix
        self.fix_error = fix_error
        self.fix_delay = fix_delay
        self.last_known = last_known
        self.last_known_error = last_known_error
        self.addresses = addresses if addresses is not None else []
        self.reverse_error = reverse_error
        self.calls: list[str] = []
        self.fix_kwargs: dict = {}
        self.last_known_kwargs: dict = {}

    async def request_permission(self):
        self.calls.append("permission")
        if isinstance(self.permission, Exception):
            raise self.permission
        return self.permission

    async def get_current_position(self, **kwargs):
        self.calls.append("fix")
        self.fix_kwargs = kwargs
        if self.fix_delay:
            await asyncio.sleep(self.fix_delay)
        if self.fix_error:
            raise self.fix_error
        return self.fix

    async def get_last_known_position(self, **kwargs):
        self.calls.append("last_known")
        self.last_known_kwargs = kwargs
        if self.last_known_error:
            raise self.last_known_error
        return self.last_known

    async def reverse_geocode(self, coordinate):
        self.calls.append("reverse")
        if self.reverse_error:
            raise self.reverse_error
        return self.addresses


def _resolver(provider, clock=None, **location_overrides):
    settings = get_settings().location
    if location_overrides:
        settings = settings.model_copy(update=location_overrides)
    log = LocationDebugLog(enabled=True)
    return LocationResolver(provider, log, settings, clock=clock or FakeClock()), log


def _sources(log):
    return [e.source for e in log.entries()]


def test_live_fix_returns_gps_location_with_address():
    provider = FakeProvider(
        fix=PositionFix(Coordinate(40.7128, -74.006), accuracy=15.0),
        addresses=[ReverseGeocodeAddress(city="New York", region="NY", country="United States")],
    )
    resolver, log = _resolver(provider)

    location = asyncio.run(resolver.resolve())

    assert location.source == "gps"
    assert location.coordinate == Coordinate(40.7128, -74.006)
    assert location.accuracy == 15.0
    assert location.address == "New York, NY, United States"
    assert location.timestamp == T0
    assert resolver.current_location == location
    assert provider.fix_kwargs == {"accuracy": "balanced", "time_interval_s": 10, "distance_interval_m": 100}
    assert _sources(log) == [
        "get_current_location",
        "permission_request",
        "permission_check",
        "gps_location",
        "reverse_geocode",
    ]


def test_reverse_geocode_failure_is_not_fatal():
    provider = FakeProvider(fix=PositionFix(Coordinate(40.7128, -74.006)), reverse_error=RuntimeError("offline"))
    resolver, log = _resolver(provider)

    location = asyncio.run(resolver.resolve())

    assert location.source == "gps"
    assert location.address is None
    assert "reverse_geocode_error" in _sources(log)


def test_empty_reverse_geocode_leaves_address_unset():
    provider = FakeProvider(fix=PositionFix(Coordinate(40.7128, -74.006)), addresses=[ReverseGeocodeAddress()])
    resolver, log = _resolver(provider)

    location = asyncio.run(resolver.resolve())

    assert location.address is None
    assert log.entries()[-1].messages == ["Failed to get readable address"]


def test_fresh_cache_is_used_when_live_fix_fails():
    clock = FakeClock()
    provider = FakeProvider(fix_error=RuntimeError("gps off"))
    resolver, log = _resolver(provider, clock)
    manual = resolver.set_manual_location(51.5074, -0.1278, "London")

    clock.advance(60)
    location = asyncio.run(resolver.resolve())

    assert location.source == "cache"
    assert location.coordinate == manual.coordinate
    assert location.address == "London"
    assert location.timestamp == manual.timestamp
    assert resolver.current_location == manual
    assert "last_known" not in provider.calls
    assert _sources(log)[-3:] == ["location_error", "fallback_attempt", "cache_hit"]


def test_stale_cache_and_no_last_known_raises_with_original_error():
    clock = FakeClock()
    original = RuntimeError("gps off")
    provider = FakeProvider(fix_error=original, last_known=None)
    resolver, log = _resolver(provider, clock)
    resolver.set_manual_location(51.5074, -0.1278)

    clock.advance(301)
    with pytest.raises(LocationUnavailable) as excinfo:
        asyncio.run(resolver.resolve())

    assert excinfo.value.original_error is original
    assert excinfo.value.__cause__ is original
    assert provider.last_known_kwargs == {"max_age_s": 600, "required_accuracy_m": 1000}
    assert _sources(log)[-3:] == ["cache_miss", "last_known_miss", "location_unavailable"]


def test_last_known_fallback_when_no_cache():
    provider = FakeProvider(
        fix_error=RuntimeError("gps off"),
        last_known=PositionFix(Coordinate(34.0522, -118.2437), accuracy=250.0),
    )
    resolver, _ = _resolver(provider)

    location = asyncio.run(resolver.resolve())

    assert location.source == "last-known"
    assert location.coordinate == Coordinate(34.0522, -118.2437)
    assert location.accuracy == 250.0
    assert resolver.current_location is None


def test_last_known_error_is_absorbed():
    provider = FakeProvider(fix_error=RuntimeError("gps off"), last_known_error=RuntimeError("boom"))
    resolver, log = _resolver(provider)

    with pytest.raises(LocationUnavailable):
        asyncio.run(resolver.resolve())
    assert "last_known_error" in _sources(log)


def test_permission_denied_skips_live_fix():
    provider = FakeProvider(permission="denied", last_known=PositionFix(Coordinate(34.0522, -118.2437)))
    resolver, _ = _resolver(provider)

    location = asyncio.run(resolver.resolve())

    assert location.source == "last-known"
    assert "fix" not in provider.calls


def test_permission_denied_is_the_surfaced_error():
    provider = FakeProvider(permission="denied")
    resolver, _ = _resolver(provider)

    with pytest.raises(LocationUnavailable) as excinfo:
        asyncio.run(resolver.resolve())

    assert isinstance(excinfo.value.original_error, PermissionDenied)
    assert excinfo.value.original_error.status == "denied"


def test_permission_request_error_reports_error_status():
    provider = FakeProvider(permission=RuntimeError("prompt crashed"))
    resolver, log = _resolver(provider)

    with pytest.raises(LocationUnavailable) as excinfo:
        asyncio.run(resolver.resolve())

    assert excinfo.value.original_error.status == "error"
    assert "permission_error" in _sources(log)


def test_invalid_live_fix_falls_through():
    provider = FakeProvider(
        fix=PositionFix(Coordinate(95.5, 10.5)),
        last_known=PositionFix(Coordinate(34.0522, -118.2437)),
    )
    resolver, _ = _resolver(provider)

    location = asyncio.run(resolver.resolve())

    assert location.source == "last-known"
    assert resolver.current_location is None


def test_invalid_live_fix_error_is_preserved():
    provider = FakeProvider(fix=PositionFix(Coordinate(95.5, 10.5)))
    resolver, _ = _resolver(provider)

    with pytest.raises(LocationUnavailable) as excinfo:
        asyncio.run(resolver.resolve())

    assert isinstance(excinfo.value.original_error, InvalidCoordinates)
    assert "Invalid latitude: 95.5" in str(excinfo.value)


def test_live_fix_time_budget():
    provider = FakeProvider(fix=PositionFix(Coordinate(40.7128, -74.006)), fix_delay=1.0)
    resolver, _ = _resolver(provider, live_fix_timeout_seconds=0.01)

    with pytest.raises(LocationUnavailable) as excinfo:
        asyncio.run(resolver.resolve())

    assert isinstance(excinfo.value.original_error, TimeoutError)


def test_manual_location_with_warnings_is_installed():
    provider = FakeProvider()
    resolver, log = _resolver(provider)

    location = resolver.set_manual_location(0, 0, "Null Island")

    assert location.source == "manual"
    assert location.coordinate == Coordinate(0.0, 0.0)
    assert resolver.current_location == location
    entry = log.entries()[-1]
    assert entry.source == "manual_location"
    assert entry.messages[-1] == "Manually set location"
    assert any("Null Island" in m for m in entry.messages)


def test_manual_location_out_of_range_is_not_blocked():
    resolver, _ = _resolver(FakeProvider())
    location = resolver.set_manual_location(91.5, 10.5)
    assert location.coordinate.latitude == 91.5


def test_manual_location_rejects_non_numbers():
    resolver, _ = _resolver(FakeProvider())
    with pytest.raises(InvalidCoordinates):
        resolver.set_manual_location("north", 10.5)
    assert resolver.current_location is None


def test_live_fix_far_from_previous_location_is_recorded():
    provider = FakeProvider(fix=PositionFix(Coordinate(40.7228, -74.006)))
    resolver, log = _resolver(provider)
    resolver.set_manual_location(40.7128, -74.006)

    asyncio.run(resolver.resolve())

    moved = [e for e in log.entries() if e.source == "location_changed"]
    assert len(moved) == 1
    assert moved[0].coordinate == Coordinate(40.7228, -74.006)
    assert moved[0].messages[0].startswith("Moved 1112m from 40.712800, -74.006000")


def test_small_moves_stay_under_change_threshold():
    provider = FakeProvider(fix=PositionFix(Coordinate(40.7132, -74.006)))
    resolver, log = _resolver(provider)
    resolver.set_manual_location(40.7128, -74.006)

    asyncio.run(resolver.resolve())
    assert "location_changed" not in _sources(log)

    # the same ~44m move counts once the threshold is tightened
    resolver, log = _resolver(provider, change_threshold_m=10)
    resolver.set_manual_location(40.7128, -74.006)
    asyncio.run(resolver.resolve())
    assert "location_changed" in _sources(log)
