"""
Main entrypoint for the shelter finder.

Usage:
    Refresh the local shelter catalog (`python main.py`), and optionally list the shelters
    near a location with their addresses (`python main.py --lat 50.45 --lon 30.52`).
    The API is served from `src.api.app:app`.
"""
import argparse

from src.config import DEFAULT_RADIUS_KM, OVERPASS_AREA_ID, configure_logging
from src.db.database import create_tables
from src.geocoding.resolver import build_default_resolver
from src.models.shelter import Coordinate
from src.pipeline.resolution import ResolutionPipeline
from src.proximity.filter import ProximityFilter
from src.scraper.overpass_scraper import load_catalog, refresh_catalog


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Find civil shelters near a location.")
    parser.add_argument("--lat", type=float, help="Latitude of your location")
    parser.add_argument("--lon", type=float, help="Longitude of your location")
    parser.add_argument("--radius", type=float, default=DEFAULT_RADIUS_KM, help="Search radius in km")
    parser.add_argument("--area-id", type=int, default=OVERPASS_AREA_ID, help="Overpass area id to fetch")
    parser.add_argument("--skip-refresh", action="store_true", help="Use the stored catalog as is")
    return parser.parse_args(argv)


def main(argv=None):
    """
    Main function to refresh the catalog and list nearby shelters.
    """
    args = parse_args(argv)
    configure_logging()

    try:
        # Initialize database tables
        create_tables()

        if not args.skip_refresh:
            print(f"Refreshing shelter catalog for area {args.area_id}...")
            fetched, inserted, updated, removed, errors = refresh_catalog(args.area_id)
            print(f"  Shelters fetched: {fetched}")
            print(f"  Inserted: {inserted}")
            print(f"  Updated: {updated}")
            print(f"  Removed: {removed}")
            print(f"  Errors: {errors}")

        if args.lat is None or args.lon is None:
            return 0

        catalog = load_catalog()
        if not catalog:
            print("No shelter data available. Please try again later.")
            return 0

        pipeline = ResolutionPipeline(ProximityFilter(args.radius), build_default_resolver())
        shelters = pipeline.run(catalog, Coordinate(lat=args.lat, lon=args.lon), args.radius)
        if not shelters:
            print(f"No shelters found within {args.radius:g} km of your location.")
            return 0

        for shelter in shelters:
            name = f" - {shelter.name}" if shelter.name else ""
            print(f"[{shelter.kind}]{name}: {shelter.address} (ID: {shelter.id})")

        return 0
    except Exception as e:
        print(f"An error occurred in the main function: {str(e)}")
        return 1


if __name__ == "__main__":
    exit_code = main()
    print(f"Exiting with code {exit_code}")
