import json
import re

import pytest

from nearbyplaces.core.geo import Coordinate
from nearbyplaces.diagnostics.debug_log import LocationDebugLog
from nearbyplaces.domain.models import WeatherSummary


def test_ring_buffer_keeps_last_50_oldest_first():
    log = LocationDebugLog(enabled=True)
    for i in range(60):
        log.record(f"event_{i}", Coordinate(latitude=float(i), longitude=0.5))

    entries = log.entries()
    assert len(entries) == 50
    assert len(log) == 50
    assert [e.source for e in entries] == [f"event_{i}" for i in range(10, 60)]


def test_clear_then_report_is_empty():
    log = LocationDebugLog(enabled=True)
    log.record("a", Coordinate(1.5, 2.5))
    log.clear()
    assert log.report() == ""
    assert json.loads(log.export()) == []


def test_disabled_log_ignores_records():
    log = LocationDebugLog(enabled=False)
    assert log.record("a", Coordinate(1.5, 2.5)) is None
    assert log.entries() == []
    assert log.report() == ""


def test_report_renders_optional_lines():
    log = LocationDebugLog(enabled=True)
    log.record("gps_location", Coordinate(40.7128, -74.006), accuracy=12.5)
    log.record(
        "weather_response",
        Coordinate(40.71, -74.01),
        address="New York",
        weather=WeatherSummary(location_name="New York", description="clear sky"),
        messages=["first", "second"],
    )

    report = log.report()
    blocks = report.split("\n\n")
    assert len(blocks) == 2
    assert re.match(
        r"^1\. \[\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}\.\d{3}Z\] gps_location: 40\.712800, -74\.006000 \(±12\.5m\)$",
        blocks[0],
    )
    lines = blocks[1].split("\n")
    assert lines[0].endswith("weather_response: 40.710000, -74.010000")
    assert lines[1] == "   Address: New York"
    assert lines[2] == "   Weather: New York - clear sky"
    assert lines[3] == "   Errors: first, second"


def test_missing_coordinate_is_recorded_as_null_island():
    log = LocationDebugLog(enabled=True)
    log.record("permission_request", messages=["Permission status: granted"])
    assert "permission_request: 0.000000, 0.000000" in log.report()


def test_export_is_json_of_raw_entries():
    log = LocationDebugLog(enabled=True)
    log.record("manual_location", Coordinate(51.5074, -0.1278), address="London", messages=["Manually set location"])

    exported = json.loads(log.export())
    assert len(exported) == 1
    entry = exported[0]
    assert entry["source"] == "manual_location"
    assert entry["coordinate"] == {"latitude": 51.5074, "longitude": -0.1278}
    assert entry["address"] == "London"
    assert entry["messages"] == ["Manually set location"]
    assert entry["timestamp"]


def test_capacity_must_be_positive():
    with pytest.raises(ValueError):
        LocationDebugLog(enabled=True, capacity=0)
