"""CLI for running storm searches and hot-zone reports from the terminal.

Usage:
    python -m stormintel.data.storm_cli --lat 32.7767 --lng -96.7970 --months 12
    python -m stormintel.data.storm_cli --street "123 Main St" --city Dallas --state TX --zip 75201
    python -m stormintel.data.storm_cli --marker 48213
    python -m stormintel.data.storm_cli --lat 32.7767 --lng -96.7970 --hot-zones --radius 50
"""

import argparse
import asyncio
import logging

from stormintel.config import settings
from stormintel.data.cache import build_cache
from stormintel.data.resolver import StormResolver
from stormintel.models.storm import EventType, GeoPoint, HotZone, StormEvent, StormSearchResult


def _fmt_magnitude(event: StormEvent) -> str:
    if event.magnitude is None:
        return "-"
    unit = '"' if event.event_type is EventType.HAIL else " mph"
    return f"{event.magnitude:g}{unit}"


def print_search(result: StormSearchResult, limit: int = 25) -> None:
    area = result.search_area
    where = f"{area.center.lat:.4f}, {area.center.lng:.4f}" if area.center else "unknown location"
    print(f"\n{'=' * 72}")
    print(f"  Storm History: {where}")
    print(f"{'=' * 72}")
    print(f"  Window:       {area.months} months")
    print(f"  Radius:       {area.radius_miles:g} mi")
    print(f"  Events:       {result.total_count}")
    for source, status in result.source_status.items():
        print(f"  {source:<12}  {status.value}")
    print()

    for e in result.events[:limit]:
        severity = e.severity.value if e.severity else "-"
        print(f"  {e.date}  {e.event_type.value:<8} {_fmt_magnitude(e):>8}  {severity:<9} {e.source}")
        if e.location:
            print(f"              {e.location}")
    if result.total_count > limit:
        print(f"  ... {result.total_count - limit} more")
    print()


def print_hot_zones(zones: list[HotZone]) -> None:
    print(f"\n{'=' * 72}")
    print(f"  Hot Zones ({len(zones)})")
    print(f"{'=' * 72}")
    for z in zones:
        max_size = f'{z.max_magnitude:g}"' if z.max_magnitude is not None else "-"
        print(f"  [{z.intensity:>3}]  {z.center_lat:.3f}, {z.center_lng:.3f}  "
              f"events={z.event_count} recent={z.recent_event_count} max={max_size} last={z.last_event_date}")
        print(f"         {z.recommendation}")
    print()


async def main() -> None:
    parser = argparse.ArgumentParser(description="Storm intelligence lookup CLI")
    parser.add_argument("--lat", type=float, help="Latitude")
    parser.add_argument("--lng", type=float, help="Longitude")
    parser.add_argument("--marker", help="Hail catalog address marker id")
    parser.add_argument("--street", help="Street address")
    parser.add_argument("--city", help="City")
    parser.add_argument("--state", help="Two-letter state code")
    parser.add_argument("--zip", dest="zip_code", default="", help="ZIP code")
    parser.add_argument("--months", type=int, default=settings.default_months,
                        help=f"Lookback window in months (default: {settings.default_months})")
    parser.add_argument("--radius", type=float, default=None, help="Search radius in miles")
    parser.add_argument("--hot-zones", action="store_true", help="Rank canvassing hot zones around --lat/--lng")
    parser.add_argument("--limit", type=int, default=25, help="Max events to print (default: 25)")

    args = parser.parse_args()
    logging.basicConfig(level=settings.log_level)
    resolver = StormResolver(cache=build_cache(settings))

    has_coords = args.lat is not None and args.lng is not None
    if args.hot_zones:
        if not has_coords:
            parser.error("--hot-zones requires --lat and --lng")
        zones = await resolver.get_hot_zones(
            center=GeoPoint(lat=args.lat, lng=args.lng),
            radius_miles=args.radius or settings.hot_zone_radius_miles,
            months=args.months,
        )
        print_hot_zones(zones)
        return

    radius = args.radius or settings.default_radius_miles
    if args.marker:
        result = await resolver.search_by_marker(args.marker, args.months)
    elif args.street and args.city and args.state:
        result = await resolver.search_by_address(
            args.street, args.city, args.state, args.zip_code, args.months, radius
        )
    elif has_coords:
        result = await resolver.search_by_coordinates(args.lat, args.lng, args.months, radius)
    else:
        parser.error("provide --marker, --street/--city/--state, or --lat/--lng")
        return
    print_search(result, args.limit)


if __name__ == "__main__":
    asyncio.run(main())
