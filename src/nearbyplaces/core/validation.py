"""
Coordinate sanity checks.

Hard errors (non-numeric, out of range) make a reading invalid. Soft warnings
(Null Island, whole-degree rounding) are reported alongside but keep it valid.
Every rule is evaluated; nothing short-circuits.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from numbers import Real
from typing import Any

NOT_NUMERIC = "Coordinates must be finite numbers"
NULL_ISLAND_WARNING = "Null Island coordinates (0,0) - likely default/error value"
ROUNDED_WARNING = "Coordinates appear to be rounded to whole numbers - check GPS accuracy"


@dataclass(frozen=True)
class CoordinateValidation:
    """Outcome of `validate_coordinates`; `errors` keeps rule order."""

    valid: bool
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)


def _is_finite_number(value: Any) -> bool:
    return isinstance(value, Real) and not isinstance(value, bool) and math.isfinite(value)


def validate_coordinates(lat: Any, lon: Any) -> CoordinateValidation:
    errors: list[str] = []
    warnings: list[str] = []
    hard = False

    lat_ok = _is_finite_number(lat)
    lon_ok = _is_finite_number(lon)
    if not (lat_ok and lon_ok):
        errors.append(NOT_NUMERIC)
        hard = True

    if lat_ok and not -90 <= lat <= 90:
        errors.append(f"Invalid latitude: {lat} (must be between -90 and 90)")
        hard = True

    if lon_ok and not -180 <= lon <= 180:
        errors.append(f"Invalid longitude: {lon} (must be between -180 and 180)")
        hard = True

    if lat_ok and lon_ok:
        if lat == 0 and lon == 0:
            warnings.append(NULL_ISLAND_WARNING)
        if float(lat).is_integer() and float(lon).is_integer():
            warnings.append(ROUNDED_WARNING)
        errors.extend(warnings)

    return CoordinateValidation(valid=not hard, errors=errors, warnings=warnings)
