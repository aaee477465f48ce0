"""Client utilities for the National 211 resource search API."""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

import requests

from resource_finder.core import taxonomy
from resource_finder.core.config import ConfigError, Settings, get_settings
from resource_finder.core.errors import MalformedResponseError, NetworkError, ProviderError
from resource_finder.etl.ranking import annotate_distances
from resource_finder.etl.transform import normalize_page, to_resource
from resource_finder.models import (
    SORT_DISTANCE,
    SORT_MODES,
    SORT_RELEVANCE,
    LocationState,
    Resource,
    ResourcePage,
    ZipCodeLocation,
    location_origin,
)

logger = logging.getLogger(__name__)
_SESSION = requests.Session()

REQUEST_TIMEOUT = 10
REGION_LOCATION_MODE = "Within"


@dataclass(frozen=True)
class SearchEncoding:
    keywords: str
    is_taxonomy_code: bool


def encode_term(term: str, is_subcategory: bool = False) -> SearchEncoding:
    """Decide between a taxonomy-code search and a free-text keyword search."""
    cleaned = (term or "").strip()
    if not cleaned:
        raise ValueError("Search term must be provided for directory lookups.")

    if is_subcategory:
        sub = taxonomy.resolve_subcategory(cleaned)
        if sub is not None:
            return SearchEncoding(keywords=sub.taxonomy_code, is_taxonomy_code=True)
        if taxonomy.is_taxonomy_code(cleaned):
            return SearchEncoding(keywords=cleaned.upper(), is_taxonomy_code=True)
    else:
        category = taxonomy.resolve_category(cleaned)
        if category is not None and category.taxonomy_code:
            return SearchEncoding(keywords=category.taxonomy_code, is_taxonomy_code=True)

    return SearchEncoding(keywords=cleaned.lower(), is_taxonomy_code=False)


def build_search_params(
    term: str,
    *,
    location: LocationState,
    is_subcategory: bool = False,
    offset: int = 0,
    page_size: int = 20,
    settings: Optional[Settings] = None,
) -> Dict[str, str]:
    """Construct query parameters for the keyword search endpoint."""
    if offset < 0:
        raise ValueError("offset must not be negative")
    if page_size < 1:
        raise ValueError("page_size must be positive")

    settings = settings or get_settings()
    encoding = encode_term(term, is_subcategory)

    params: Dict[str, str] = {
        "keywords": encoding.keywords,
        "keywordIsTaxonomyCode": "true" if encoding.is_taxonomy_code else "false",
        "offset": str(offset),
        "size": str(page_size),
    }
    if isinstance(location, ZipCodeLocation):
        params["location"] = location.zip_code
        params["locationMode"] = settings.postal_location_mode
        params["distance"] = str(settings.search_radius_miles)
        params["orderByDistance"] = "true"
    else:
        params["location"] = settings.fallback_location
        params["locationMode"] = REGION_LOCATION_MODE
    return params


def _headers(settings: Settings, location_mode: Optional[str] = None) -> Dict[str, str]:
    if not settings.directory_api_key:
        raise ConfigError("DIRECTORY_API_KEY is required for directory searches")
    headers = {"Api-Key": settings.directory_api_key, "Accept": "application/json"}
    if location_mode:
        headers["locationMode"] = location_mode
    return headers


def _get_json(url: str, params: Dict[str, str], headers: Dict[str, str]) -> Any:
    try:
        response = _SESSION.get(url, params=params, headers=headers, timeout=REQUEST_TIMEOUT)
    except requests.RequestException as exc:
        logger.error("Directory request to %s failed: %s", url, exc)
        raise NetworkError(f"Network error: {exc}") from exc

    if not 200 <= response.status_code < 300:
        body = response.text or ""
        message = None
        try:
            data = response.json()
            if isinstance(data, dict):
                message = data.get("message")
        except ValueError:
            pass
        logger.error("Directory API returned status=%s body=%s", response.status_code, body[:500])
        raise ProviderError(response.status_code, body, message)

    try:
        return response.json()
    except ValueError as exc:
        logger.error("Directory API returned non-JSON body: %s", (response.text or "")[:200])
        raise MalformedResponseError("Directory response is not valid JSON") from exc


def search_resources(
    term: str,
    *,
    location: LocationState,
    is_subcategory: bool = False,
    sort_by: str = SORT_RELEVANCE,
    offset: int = 0,
    page_size: Optional[int] = None,
    settings: Optional[Settings] = None,
) -> ResourcePage:
    """Fetch one page of resources for ``term`` around ``location``.

    Provider order is preserved. With ``sort_by="distance"`` each item also
    gets ``distance_miles`` measured from the location's coordinate.
    """
    if sort_by not in SORT_MODES:
        raise ValueError(f"Unsupported sort mode: {sort_by!r}")

    settings = settings or get_settings()
    size = settings.page_size if page_size is None else page_size
    params = build_search_params(
        term,
        location=location,
        is_subcategory=is_subcategory,
        offset=offset,
        page_size=size,
        settings=settings,
    )
    headers = _headers(settings, params.get("locationMode"))

    logger.info(
        "Searching directory keywords=%s taxonomy=%s location=%s offset=%s size=%s",
        params["keywords"],
        params["keywordIsTaxonomyCode"],
        params["location"],
        offset,
        size,
    )
    payload = _get_json(f"{settings.directory_api_url}/keyword", params, headers)
    page = normalize_page(payload, offset)
    logger.info("Fetched %d of %d resources at offset %d", len(page.items), page.total, offset)

    if sort_by == SORT_DISTANCE:
        origin = location_origin(location)
        page = ResourcePage(items=tuple(annotate_distances(page.items, origin)), total=page.total, offset=page.offset)
    return page


def get_resource(resource_id: str, settings: Optional[Settings] = None) -> Optional[Resource]:
    """Fetch a single resource by provider id. Returns None when the provider answers 404."""
    if not resource_id or not resource_id.strip():
        raise ValueError("Resource id is required.")

    settings = settings or get_settings()
    try:
        payload = _get_json(
            f"{settings.directory_api_url}/detail",
            {"id": resource_id.strip()},
            _headers(settings),
        )
    except ProviderError as exc:
        if exc.status == 404:
            logger.info("Resource %s not found in directory", resource_id)
            return None
        raise

    if not isinstance(payload, dict):
        raise MalformedResponseError("Detail response is not a JSON object")
    raw = payload.get("resource") if isinstance(payload.get("resource"), dict) else payload
    return to_resource(raw)
