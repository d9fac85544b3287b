"""CLI entry point for the rental comp engine."""

import argparse
import asyncio
import logging
import sys
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path

import httpx

from rentcomps.core.config import RetsCredentials, Settings
from rentcomps.core.errors import RetsError
from rentcomps.core.schemas import SubjectCriteria
from rentcomps.mls import get_schema
from rentcomps.mls.mapper import FieldMapper
from rentcomps.pipeline.orchestrator import export_results_json, run_comp_search
from rentcomps.rets.client import RetsClient
from rentcomps.rets.objects import PhotoFetcher
from rentcomps.rets.session import SessionManager
from rentcomps.sources.rets import RetsListingSource, build_search_request


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Rental comp engine - search an MLS over RETS and rank comparables",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    def add_common(p: argparse.ArgumentParser) -> None:
        p.add_argument(
            "--config",
            default="config/settings.yaml",
            help="Path to settings YAML file (default: config/settings.yaml)",
        )
        p.add_argument(
            "--verbose", "-v",
            action="store_true",
            help="Enable verbose (DEBUG) logging",
        )

    # --- search subcommand ---
    search_parser = subparsers.add_parser("search", help="Search and rank rental comps")
    add_common(search_parser)
    search_parser.add_argument(
        "--subject",
        required=True,
        help="Path to subject property YAML file",
    )
    search_parser.add_argument(
        "--export",
        choices=["json"],
        help="Export results to format (json)",
    )

    # --- query subcommand (dry run) ---
    query_parser = subparsers.add_parser(
        "query",
        help="Print the DMQL2 query and Search parameters without connecting",
    )
    add_common(query_parser)
    query_parser.add_argument(
        "--subject",
        required=True,
        help="Path to subject property YAML file",
    )

    # --- photo subcommand ---
    photo_parser = subparsers.add_parser("photo", help="Fetch one listing photo")
    add_common(photo_parser)
    photo_parser.add_argument("--listing-id", required=True, help="MLS listing id")
    photo_parser.add_argument("--index", type=int, default=0, help="Photo index (default: 0)")
    photo_parser.add_argument("--output", required=True, help="Where to write the image")

    # --- metadata subcommand ---
    metadata_parser = subparsers.add_parser("metadata", help="Print RETS metadata")
    add_common(metadata_parser)
    metadata_parser.add_argument(
        "--type",
        default="METADATA-CLASS",
        help="Metadata type (default: METADATA-CLASS)",
    )
    metadata_parser.add_argument("--id", default="Property", help="Metadata id (default: Property)")

    return parser.parse_args(argv)


def setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )


def load_settings(path: str) -> Settings:
    """Settings from YAML, or defaults when the file does not exist."""
    if not Path(path).exists():
        logging.getLogger(__name__).info("No config at %s, using defaults", path)
        return Settings()
    return Settings.from_yaml(path)


@asynccontextmanager
async def open_client(settings: Settings) -> AsyncIterator[RetsClient]:
    """Build the RETS client stack; logs out a cached session on exit."""
    credentials = RetsCredentials.from_env()
    async with httpx.AsyncClient() as http:
        sessions = SessionManager(credentials, http, settings.session)
        try:
            yield RetsClient(sessions, http)
        finally:
            await sessions.close()


def build_source(client: RetsClient, settings: Settings) -> RetsListingSource:
    mapper = FieldMapper(get_schema(settings.mls_system))
    return RetsListingSource(client, mapper, use_select=settings.use_select)


def cmd_query(settings: Settings, subject: SubjectCriteria) -> None:
    """Print what would be sent, without credentials or network."""
    mapper = FieldMapper(get_schema(settings.mls_system))
    request = build_search_request(
        mapper, subject, settings.constraints, use_select=settings.use_select,
    )
    print(f"[DRY RUN] MLS system: {settings.mls_system}")
    print(f"[DRY RUN] Query: {request.query}")
    for key, value in request.to_params().items():
        print(f"  {key}={value}")


async def cmd_search(settings: Settings, subject: SubjectCriteria, export_format: str | None) -> None:
    async with open_client(settings) as client:
        source = build_source(client, settings)
        result = await run_comp_search(subject, source, settings)

    print(f"\nSearch complete: {result.record_count} valid records, "
          f"{len(result.ranked)} comps ranked.")
    for s in result.ranked:
        r = s.record
        distance = "n/a" if s.distance_miles is None else f"{s.distance_miles:.2f} mi"
        print(f"  [{s.score:3d}] {r.listing_id} {r.address}, {r.city} "
              f"${r.rent_price:,.0f}/mo {r.bedrooms}bd/{r.bathrooms:g}ba "
              f"{r.sqft} sqft ({distance})")

    if export_format == "json":
        print(f"\n{export_results_json(result)}")


async def cmd_photo(settings: Settings, listing_id: str, index: int, output: str) -> int:
    async with open_client(settings) as client:
        photo = await PhotoFetcher(client).fetch(listing_id, index)
    if photo is None:
        print(f"No photo available for {listing_id}:{index}")
        return 1
    Path(output).write_bytes(photo.data)
    print(f"Wrote {len(photo.data)} bytes ({photo.content_type}) to {output}")
    return 0


async def cmd_metadata(settings: Settings, metadata_type: str, metadata_id: str) -> None:
    async with open_client(settings) as client:
        print(await client.get_metadata(metadata_type, metadata_id))


def main(argv: list[str] | None = None) -> None:
    args = parse_args(argv)
    setup_logging(args.verbose)

    try:
        settings = load_settings(args.config)
    except (FileNotFoundError, ValueError) as e:
        print(f"Error loading config: {e}", file=sys.stderr)
        sys.exit(1)

    exit_code = 0
    try:
        if args.command == "query":
            cmd_query(settings, SubjectCriteria.from_yaml(args.subject))
        elif args.command == "search":
            subject = SubjectCriteria.from_yaml(args.subject)
            asyncio.run(cmd_search(settings, subject, args.export))
        elif args.command == "photo":
            exit_code = asyncio.run(cmd_photo(settings, args.listing_id, args.index, args.output))
        elif args.command == "metadata":
            asyncio.run(cmd_metadata(settings, args.type, args.id))
    except RetsError as e:
        logging.getLogger(__name__).debug("Command failed", exc_info=True)
        print(f"Error: {args.command} failed: {e}", file=sys.stderr)
        sys.exit(1)
    except (FileNotFoundError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    if exit_code:
        sys.exit(exit_code)


if __name__ == "__main__":
    main()
