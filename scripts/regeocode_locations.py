"""Re-geocode locations stored at the (0, 0) marker.

Locations whose address could not be geocoded at creation time are stored at
(0, 0). This script retries the lookup for those rows and updates the ones
that now resolve.

Usage:
    uv run python scripts/regeocode_locations.py              # Update resolvable locations
    uv run python scripts/regeocode_locations.py --dry-run    # Report only, write nothing
    uv run python scripts/regeocode_locations.py --limit 50   # Process at most 50 rows

Nominatim allows at most one request per second, so lookups are spaced out.
"""

import argparse
import asyncio
import sys
from pathlib import Path

# Add parent to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from listings.database import SessionLocal
from listings.geocoding import GeocodingResolver
from listings.models import Location
from listings.repository import location_geometry, make_point
from listings.schemas import AddressFields

REQUEST_INTERVAL_S = 1.0


def find_unresolved(db: Session, limit: int) -> list[Location]:
    """Locations whose point is exactly (0, 0)."""
    geometry = location_geometry()
    stmt = (
        select(Location)
        .where(func.ST_X(geometry) == 0, func.ST_Y(geometry) == 0)
        .order_by(Location.id)
        .limit(limit)
    )
    return list(db.scalars(stmt))


async def regeocode(limit: int, dry_run: bool) -> dict:
    resolver = GeocodingResolver()
    stats = {"checked": 0, "resolved": 0, "unresolved": 0}

    db = SessionLocal()
    try:
        locations = find_unresolved(db, limit)
        print(f"Found {len(locations)} locations at (0, 0)")

        for i, location in enumerate(locations):
            if i:
                await asyncio.sleep(REQUEST_INTERVAL_S)

            stats["checked"] += 1
            coordinates = await resolver.resolve(AddressFields(
                address=location.address,
                city=location.city,
                state=location.state,
                country=location.country,
                postal_code=location.postal_code,
            ))

            if coordinates.is_unresolved:
                stats["unresolved"] += 1
                continue

            stats["resolved"] += 1
            print(f"  Location {location.id}: {location.address} -> "
                  f"{coordinates.latitude:.6f}, {coordinates.longitude:.6f}")

            if not dry_run:
                db.execute(
                    update(Location)
                    .where(Location.id == location.id)
                    .values(coordinates=make_point(coordinates))
                )

        if dry_run:
            db.rollback()
        else:
            db.commit()
    finally:
        db.close()

    return stats


def main():
    parser = argparse.ArgumentParser(description="Re-geocode locations stored at (0, 0)")
    parser.add_argument("--limit", type=int, default=500, help="Maximum locations to process")
    parser.add_argument("--dry-run", action="store_true", help="Report without writing")
    args = parser.parse_args()

    stats = asyncio.run(regeocode(args.limit, args.dry_run))

    print("\nSummary:")
    print(f"  Checked:    {stats['checked']}")
    print(f"  Resolved:   {stats['resolved']}")
    print(f"  Unresolved: {stats['unresolved']}")
    if args.dry_run:
        print("  (dry run, nothing written)")


if __name__ == "__main__":
    main()
