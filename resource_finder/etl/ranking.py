"""Merging, deduplication and ordering of accumulated search results."""

import dataclasses
import logging
from typing import Iterable, List, Optional

from resource_finder.core import zip_table
from resource_finder.models import (
    SORT_DISTANCE,
    SORT_MODES,
    SORT_NAME,
    Coordinate,
    Resource,
    ResourcePage,
)

logger = logging.getLogger(__name__)


def dedupe(items: Iterable[Resource]) -> List[Resource]:
    """Keep the first occurrence of every resource id, in order of first appearance."""
    seen = set()
    unique: List[Resource] = []
    for item in items:
        if item.id in seen:
            logger.debug("Dropping duplicate resource %s", item.id)
            continue
        seen.add(item.id)
        unique.append(item)
    return unique


def merge_pages(pages: Iterable[ResourcePage]) -> List[Resource]:
    return dedupe(item for page in pages for item in page.items)


def annotate_distances(items: Iterable[Resource], origin: Optional[Coordinate]) -> List[Resource]:
    """Return copies of ``items`` with ``distance_miles`` measured from ``origin`` by zip."""
    annotated: List[Resource] = []
    for item in items:
        miles = None
        if origin is not None and item.zip_code:
            target = zip_table.lookup(item.zip_code)
            if target is not None:
                miles = zip_table.distance(origin, target)
        annotated.append(dataclasses.replace(item, distance_miles=miles))
    return annotated


def sort_resources(items: Iterable[Resource], sort_by: str) -> List[Resource]:
    """Order results for display. Relevance keeps the given order."""
    if sort_by not in SORT_MODES:
        raise ValueError(f"Unsupported sort mode: {sort_by!r}")

    ordered = list(items)
    if sort_by == SORT_NAME:
        ordered.sort(key=lambda r: r.name.casefold())
    elif sort_by == SORT_DISTANCE:
        ordered.sort(key=lambda r: (r.distance_miles is None, r.distance_miles or 0.0))
    return ordered
