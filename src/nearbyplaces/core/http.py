"""
HTTP helpers.

This module centralizes the minimal HTTP client logic used by the places and weather clients.

Design goals:
- Small surface area (async GET JSON).
- Deterministic defaults (timeout + User-Agent).
- Raise on non-2xx so callers can decide how to fail (places: surface, details: absorb).
"""

from __future__ import annotations

from typing import Any

import httpx


DEFAULT_USER_AGENT = "nearbyplaces/0.1.0 (+https://local)"


async def get_json(
    url: str,
    *,
    params: dict[str, Any] | None = None,
    headers: dict[str, str] | None = None,
    timeout_seconds: float = 10,
) -> Any:
    """GET `url` and return the decoded JSON response.

    Raises:
        httpx.HTTPError: On transport errors or non-2xx status codes.
        ValueError: If the response body is not valid JSON.
    """
    request_headers = {"User-Agent": DEFAULT_USER_AGENT}
    if headers:
        request_headers.update(headers)

    async with httpx.AsyncClient(timeout=timeout_seconds) as client:
        resp = await client.get(url, params=params, headers=request_headers)
        resp.raise_for_status()
        return resp.json()


def describe_http_error(exc: Exception) -> tuple[int | None, str]:
    """Return (status_code, message) for logging/raising, without leaking query strings."""
    if isinstance(exc, httpx.HTTPStatusError):
        status = exc.response.status_code
        url = exc.request.url
        return status, f"HTTP {status} from {url.scheme}://{url.host}{url.path}"
    if isinstance(exc, httpx.TimeoutException):
        return None, "request timed out"
    return None, str(exc) or exc.__class__.__name__
