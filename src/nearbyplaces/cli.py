"""
NearbyPlaces CLI entrypoint.

This CLI is intended for quick local checks of location resolution, places search and
the weather debug path without a frontend. Each run builds its own `Services` bundle,
so `--report` shows the debug events of that run only.
"""

from __future__ import annotations

import argparse
import asyncio
import json
from typing import Any

from nearbyplaces.config.settings import Settings, get_settings
from nearbyplaces.core.cancellation import CancellationToken
from nearbyplaces.core.geo import Coordinate
from nearbyplaces.core.logging import configure_logging
from nearbyplaces.diagnostics.known_locations import run_known_location_checks
from nearbyplaces.domain.models import SearchOptions
from nearbyplaces.errors import NearbyPlacesError, RequestCancelled
from nearbyplaces.services import Services, build_services


def _print_json(payload: Any) -> None:
    print(json.dumps(payload, ensure_ascii=False, indent=2))


async def _origin(services: Services, args: argparse.Namespace) -> Coordinate:
    if args.lat is not None and args.lon is not None:
        return Coordinate(latitude=float(args.lat), longitude=float(args.lon))
    location = await services.resolver.resolve()
    return location.coordinate


async def _cmd_locate(services: Services, args: argparse.Namespace) -> int:
    location = await services.resolver.resolve()
    if args.json:
        _print_json(location.model_dump(mode="json"))
        return 0
    c = location.coordinate
    print(f"{c.latitude:.6f}, {c.longitude:.6f}  source={location.source}")
    if location.address:
        print(f"  address: {location.address}")
    if location.accuracy:
        print(f"  accuracy: ±{location.accuracy:g}m")
    return 0


async def _cmd_manual(services: Services, args: argparse.Namespace) -> int:
    location = services.resolver.set_manual_location(args.lat, args.lon, args.label)
    if args.json:
        _print_json(location.model_dump(mode="json"))
    else:
        print(f"Manual location set: {location.coordinate.latitude:.6f}, {location.coordinate.longitude:.6f}")
    return 0


async def _cmd_search(services: Services, args: argparse.Namespace) -> int:
    origin = await _origin(services, args)
    defaults = services.places.default_options()
    options = SearchOptions(
        category=args.category or defaults.category,
        radius=args.radius if args.radius is not None else defaults.radius,
        limit=args.limit if args.limit is not None else defaults.limit,
    )

    token = CancellationToken()
    if args.cancel_after is not None:
        asyncio.get_running_loop().call_later(float(args.cancel_after), token.cancel)

    places = await services.places.search(origin, options, cancel=token)
    if args.json:
        _print_json([p.model_dump(mode="json") for p in places])
        return 0

    print(f"{len(places)} results near {origin.latitude:.5f}, {origin.longitude:.5f}:")
    for i, place in enumerate(places, start=1):
        distance = f"{place.distance:.0f}m" if place.distance is not None else "distance unknown"
        print(f"{i:>2}. {place.name} [{place.category}]  {distance}")
        if place.address:
            print(f"    {place.address}")
    return 0


async def _cmd_details(services: Services, args: argparse.Namespace) -> int:
    place = await services.places.get_place_details(args.place_id)
    if place is None:
        print(f"No place found for id {args.place_id!r}")
        return 1
    if args.json:
        _print_json(place.model_dump(mode="json"))
    else:
        print(f"{place.name} [{place.category}]")
        print(f"  id: {place.id}")
        if place.address:
            print(f"  address: {place.address}")
    return 0


async def _cmd_weather(services: Services, args: argparse.Namespace) -> int:
    if args.lat is not None and args.lon is not None:
        location = services.resolver.set_manual_location(args.lat, args.lon, args.label)
    else:
        location = await services.resolver.resolve()
    result = await services.weather.get_weather_with_debug(location)
    if args.json:
        _print_json(result.model_dump(mode="json"))
        return 0
    print(f"{result.summary.location_name}: {result.summary.description}")
    print(f"  coordinate distance: {result.coordinate_distance_m}m")
    if result.coordinates_mismatch:
        print("  WARNING: response coordinates differ by more than the mismatch threshold")
    return 0


async def _cmd_known_locations(services: Services, args: argparse.Namespace) -> int:
    checks = await run_known_location_checks(services.resolver, services.weather)
    failed = 0
    for check in checks:
        if check.ok:
            summary = check.result.summary
            flag = "  MISMATCH" if check.result.coordinates_mismatch else ""
            print(f"{check.location.name}: {summary.location_name} - {summary.description}{flag}")
        else:
            failed += 1
            print(f"{check.location.name}: FAILED ({check.error})")
    return 1 if failed else 0


def _add_origin_args(p: argparse.ArgumentParser) -> None:
    p.add_argument("--lat", type=float, default=None, help="Use this latitude instead of resolving")
    p.add_argument("--lon", type=float, default=None, help="Use this longitude instead of resolving")


def _add_output_args(p: argparse.ArgumentParser, default: object) -> None:
    p.add_argument("--json", action="store_true", default=default, help="Output machine-readable JSON")
    p.add_argument("--debug", action="store_true", default=default, help="Enable the location debug log for this run")
    p.add_argument("--report", action="store_true", default=default, help="Print the location debug report at the end")


def build_parser() -> argparse.ArgumentParser:
    """Build the argparse parser for the NearbyPlaces CLI.

    `--json`, `--debug` and `--report` are accepted before or after the subcommand.
    """
    parser = argparse.ArgumentParser(prog="nearbyplaces")
    _add_output_args(parser, default=False)
    # Subcommand copies default to SUPPRESS so a flag given before the subcommand survives.
    common = argparse.ArgumentParser(add_help=False)
    _add_output_args(common, default=argparse.SUPPRESS)
    sub = parser.add_subparsers(dest="command", required=True)

    loc = sub.add_parser("locate", parents=[common], help="Resolve the current location (live fix, cache, last known).")
    loc.set_defaults(func=_cmd_locate)

    man = sub.add_parser("manual", parents=[common], help="Validate and install a manual location.")
    man.add_argument("--lat", type=float, required=True)
    man.add_argument("--lon", type=float, required=True)
    man.add_argument("--label", type=str, default=None)
    man.set_defaults(func=_cmd_manual)

    search = sub.add_parser("search", parents=[common], help="Search nearby places, closest first.")
    _add_origin_args(search)
    search.add_argument("--category", type=str, default=None)
    search.add_argument("--radius", type=float, default=None, help="Advisory radius in meters")
    search.add_argument("--limit", type=int, default=None, help="1..50")
    search.add_argument("--cancel-after", type=float, default=None, help="Cancel the request after N seconds")
    search.set_defaults(func=_cmd_search)

    det = sub.add_parser("details", parents=[common], help="Look up one place by id.")
    det.add_argument("place_id")
    det.set_defaults(func=_cmd_details)

    weather = sub.add_parser("weather", parents=[common], help="Fetch weather with coordinate diagnostics.")
    _add_origin_args(weather)
    weather.add_argument("--label", type=str, default=None)
    weather.set_defaults(func=_cmd_weather)

    known = sub.add_parser("known-locations", parents=[common], help="Run the weather check against well-known cities.")
    known.set_defaults(func=_cmd_known_locations)
    return parser


def _settings_for(args: argparse.Namespace) -> Settings:
    settings = get_settings()
    if args.debug or args.report:
        settings = settings.model_copy(update={"debug": settings.debug.model_copy(update={"enabled": True})})
    return settings


async def _run(services: Services, args: argparse.Namespace) -> int:
    func: Any = getattr(args, "func")
    try:
        return int(await func(services, args))
    except RequestCancelled:
        print("Request cancelled")
        return 130
    except NearbyPlacesError as exc:
        print(f"Error: {exc}")
        return 1
    finally:
        if args.report:
            print()
            print(services.debug_log.report() or "No debug data available")


def main(argv: list[str] | None = None) -> int:
    """CLI entrypoint callable used by `python -m nearbyplaces.cli`."""
    parser = build_parser()
    args = parser.parse_args(argv)
    settings = _settings_for(args)
    configure_logging(settings)
    services = build_services(settings)
    return asyncio.run(_run(services, args))


if __name__ == "__main__":
    raise SystemExit(main())
