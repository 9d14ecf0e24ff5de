"""
Exception types.

Resolver steps absorb these internally and fall through; only
`LocationUnavailable`, `RequestCancelled`, `RemoteRequestFailed` and
`ConfigurationError` reach callers. A missing place is `None`, not an error.
"""

from __future__ import annotations


class NearbyPlacesError(Exception):
    """Base class for all package errors."""


class ConfigurationError(NearbyPlacesError):
    """A required setting (API key, home location) is missing."""


class PermissionDenied(NearbyPlacesError):
    def __init__(self, status: str):
        super().__init__(f"Location permission denied: {status}")
        self.status = status


class InvalidCoordinates(NearbyPlacesError):
    def __init__(self, errors: list[str]):
        super().__init__(f"Invalid coordinates received: {', '.join(errors)}")
        self.errors = list(errors)


class LocationUnavailable(NearbyPlacesError):
    """Every location source failed; `original_error` is the live-fix failure."""

    def __init__(self, original_error: BaseException):
        super().__init__(str(original_error))
        self.original_error = original_error


class RequestCancelled(NearbyPlacesError):
    def __init__(self, message: str = "Request cancelled"):
        super().__init__(message)


class RemoteRequestFailed(NearbyPlacesError):
    def __init__(self, message: str, *, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code
