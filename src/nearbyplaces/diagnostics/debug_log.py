"""
Location debug log.

A fixed-capacity, in-memory ring buffer of location/weather/places events used to
diagnose "why is my location wrong" reports. It is created once by the entry point
(see `nearbyplaces.services.build_services`) and handed to every component that
records into it.

- Disabled logs ignore `record()` entirely; the flag is fixed at construction.
- Only the most recent `capacity` entries are kept (oldest evicted first).
- All buffer access goes through one lock so concurrent callers are safe.
"""

from __future__ import annotations

import json
import logging
import threading
from collections import deque
from typing import Iterable

from nearbyplaces.core.geo import Coordinate, NULL_ISLAND
from nearbyplaces.core.time import to_iso8601, utc_now
from nearbyplaces.domain.models import DebugLogEntry, WeatherSummary

logger = logging.getLogger(__name__)

DEFAULT_CAPACITY = 50


class LocationDebugLog:
    """Bounded event log with a human-readable report and JSON export."""

    def __init__(self, enabled: bool, capacity: int = DEFAULT_CAPACITY):
        if capacity < 1:
            raise ValueError("capacity must be >= 1")
        self._enabled = bool(enabled)
        self._capacity = int(capacity)
        self._entries: deque[DebugLogEntry] = deque(maxlen=self._capacity)
        self._lock = threading.Lock()

    @property
    def enabled(self) -> bool:
        return self._enabled

    @property
    def capacity(self) -> int:
        return self._capacity

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def record(
        self,
        source: str,
        coordinate: Coordinate | None = None,
        *,
        accuracy: float | None = None,
        address: str | None = None,
        weather: WeatherSummary | None = None,
        messages: Iterable[str] | None = None,
    ) -> DebugLogEntry | None:
        """Append one event; returns the stored entry (None when disabled)."""
        if not self._enabled:
            return None

        entry = DebugLogEntry(
            timestamp=utc_now(),
            source=source,
            coordinate=coordinate or NULL_ISLAND,
            accuracy=accuracy,
            address=address,
            weather=weather,
            messages=list(messages or []),
        )
        with self._lock:
            self._entries.append(entry)
        logger.debug("[LocationDebug] %s: %s", source, entry.model_dump(mode="json"))
        return entry

    def entries(self) -> list[DebugLogEntry]:
        """Snapshot of the buffer, oldest first."""
        with self._lock:
            return list(self._entries)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def report(self) -> str:
        """Render all entries, oldest first, as numbered human-readable blocks."""
        blocks = []
        for index, entry in enumerate(self.entries(), start=1):
            coords = f"{entry.coordinate.latitude:.6f}, {entry.coordinate.longitude:.6f}"
            accuracy = f" (±{entry.accuracy:g}m)" if entry.accuracy else ""
            lines = [f"{index}. [{to_iso8601(entry.timestamp)}] {entry.source}: {coords}{accuracy}"]
            if entry.address:
                lines.append(f"   Address: {entry.address}")
            if entry.weather:
                lines.append(f"   Weather: {entry.weather.location_name} - {entry.weather.description}")
            if entry.messages:
                lines.append(f"   Errors: {', '.join(entry.messages)}")
            blocks.append("\n".join(lines))
        return "\n\n".join(blocks)

    def export(self) -> str:
        """Serialize raw entries as a JSON array."""
        payload = [entry.model_dump(mode="json") for entry in self.entries()]
        return json.dumps(payload, ensure_ascii=False, indent=2)
