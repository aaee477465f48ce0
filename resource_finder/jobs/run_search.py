"""CLI job to search the 211 directory and print merged results."""

import argparse
import json
import logging
import sys
from typing import Optional, TextIO

from resource_finder.core.config import ConfigError, get_settings
from resource_finder.core.errors import ResourceFinderError
from resource_finder.core.location import LocationResolver
from resource_finder.core.pagination import SearchSession
from resource_finder.core.store import JsonFileStore
from resource_finder.models import SORT_MODES, SORT_RELEVANCE, LocationErrorState
from resource_finder.vendors.geolocation import FixedGeolocationProvider

logger = logging.getLogger(__name__)


def run_search_job(
    *,
    term: str,
    zip_code: Optional[str],
    is_subcategory: bool,
    sort_by: str,
    max_pages: int,
    page_size: Optional[int] = None,
    latitude: Optional[float] = None,
    longitude: Optional[float] = None,
    out: TextIO = sys.stdout,
) -> int:
    """Resolve the location, page through results and write them as JSON lines.

    Returns the number of unique resources written.
    """
    if not term or not term.strip():
        raise ValueError("Search term is empty")
    if max_pages < 1:
        raise ValueError("max_pages must be at least 1")

    settings = get_settings()
    store = JsonFileStore(settings.state_path)
    geolocation = None
    if latitude is not None and longitude is not None:
        geolocation = FixedGeolocationProvider(latitude, longitude)
    resolver = LocationResolver(store=store, geolocation=geolocation, settings=settings)

    if zip_code:
        state = resolver.set_zip_code(zip_code)
    elif geolocation is not None:
        state = resolver.request_current_location()
    else:
        state = resolver.load()

    if isinstance(state, LocationErrorState):
        raise ValueError(state.message)
    logger.info("Using location %s", state.kind)

    session = SearchSession(page_size=settings.page_size if page_size is None else page_size, store=store)
    session.start(term, state, is_subcategory=is_subcategory, sort_by=sort_by)

    while session.has_more and session.pages_fetched < max_pages:
        session.load_more()

    results = session.results()
    for resource in results:
        out.write(json.dumps(resource.to_dict(), ensure_ascii=False) + "\n")

    logger.info(
        "Completed search: pages=%d unique=%d total=%d has_more=%s",
        session.pages_fetched,
        len(results),
        session.total,
        session.has_more,
    )
    return len(results)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Search community resources in the 211 directory")
    parser.add_argument("--term", dest="term", required=True, help="Category id, keyword or taxonomy code")
    parser.add_argument("--zip", dest="zip_code", help="5-digit ZIP code to search around")
    parser.add_argument("--lat", dest="latitude", type=float, help="Device latitude (used with --lng)")
    parser.add_argument("--lng", dest="longitude", type=float, help="Device longitude (used with --lat)")
    parser.add_argument(
        "--subcategory",
        dest="is_subcategory",
        action="store_true",
        help="Treat the term as a subcategory id, name or taxonomy code",
    )
    parser.add_argument("--sort", dest="sort_by", choices=SORT_MODES, default=SORT_RELEVANCE)
    parser.add_argument("--max-pages", dest="max_pages", type=int, default=1, help="Maximum pages to load")
    parser.add_argument(
        "--page-size",
        dest="page_size",
        type=int,
        default=get_settings().page_size,
        help="Results per page",
    )
    return parser


def main() -> None:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s - %(message)s")
    parser = build_parser()
    args = parser.parse_args()

    try:
        run_search_job(
            term=args.term,
            zip_code=args.zip_code,
            is_subcategory=args.is_subcategory,
            sort_by=args.sort_by,
            max_pages=args.max_pages,
            page_size=args.page_size,
            latitude=args.latitude,
            longitude=args.longitude,
        )
    except ConfigError as exc:
        logger.error("Configuration error: %s", exc)
        raise SystemExit(2) from exc
    except (ValueError, ResourceFinderError) as exc:
        logger.error("Search failed: %s", exc)
        raise SystemExit(1) from exc


if __name__ == "__main__":
    main()
