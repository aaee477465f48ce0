"""Infinite-scroll accumulation of directory search pages."""

from __future__ import annotations

import json
import logging
import threading
from typing import Any, Callable, Dict, List, Optional, Tuple

from resource_finder.core.config import get_settings
from resource_finder.core.store import KeyValueStore
from resource_finder.etl.ranking import annotate_distances, dedupe, sort_resources
from resource_finder.models import (
    SORT_DISTANCE,
    SORT_MODES,
    SORT_RELEVANCE,
    LocationState,
    Resource,
    ResourcePage,
    location_origin,
    location_state_from_dict,
)
from resource_finder.vendors.directory_211 import search_resources

logger = logging.getLogger(__name__)

SEARCH_CONTEXT_KEY = "searchContext"
RECENT_RESOURCES_KEY = "recentResources"
RECENT_LIMIT = 100

FetchPage = Callable[..., ResourcePage]
SessionKey = Tuple[str, bool, str]


def session_key(term: str, is_subcategory: bool, location: LocationState) -> SessionKey:
    return (term.strip().lower(), bool(is_subcategory), json.dumps(location.to_dict(), sort_keys=True))


class SearchSession:
    """Accumulates pages for one (term, location) search.

    Pages are merged keeping the first occurrence of each resource id.
    ``has_more`` always reflects the latest fetched page. Each request takes a
    sequence number and a response carrying a stale number is dropped, so the
    most recent request wins.
    """

    def __init__(
        self,
        fetch_page: Optional[FetchPage] = None,
        page_size: Optional[int] = None,
        store: Optional[KeyValueStore] = None,
    ) -> None:
        self._fetch_page = fetch_page or search_resources
        self.page_size = get_settings().page_size if page_size is None else page_size
        self._store = store
        self._lock = threading.Lock()

        self._key: Optional[SessionKey] = None
        self._term = ""
        self._is_subcategory = False
        self._location: Optional[LocationState] = None
        self._sort_by = SORT_RELEVANCE
        self._items: List[Resource] = []
        self._last_page: Optional[ResourcePage] = None
        self._pages_fetched = 0
        self._sequence = 0
        self._in_flight = False
        self.last_error: Optional[Exception] = None

    # ---------- Read side ----------

    @property
    def term(self) -> str:
        return self._term

    @property
    def location(self) -> Optional[LocationState]:
        return self._location

    @property
    def sort_by(self) -> str:
        return self._sort_by

    @property
    def items(self) -> List[Resource]:
        return list(self._items)

    @property
    def has_more(self) -> bool:
        return self._last_page is not None and self._last_page.has_more

    @property
    def is_loading(self) -> bool:
        return self._in_flight

    @property
    def total(self) -> int:
        return self._last_page.total if self._last_page else 0

    @property
    def next_offset(self) -> int:
        return self._last_page.next_offset if self._last_page else 0

    @property
    def pages_fetched(self) -> int:
        return self._pages_fetched

    def matches(self, term: str, location: LocationState, is_subcategory: bool = False) -> bool:
        return self._key is not None and self._key == session_key(term, is_subcategory, location)

    def results(self) -> List[Resource]:
        return sort_resources(self._items, self._sort_by)

    # ---------- Actions ----------

    def start(
        self,
        term: str,
        location: LocationState,
        is_subcategory: bool = False,
        sort_by: str = SORT_RELEVANCE,
    ) -> Optional[ResourcePage]:
        """Fetch page 0. A new term or location discards everything accumulated so far."""
        if not term or not term.strip():
            raise ValueError("Search term must be provided.")
        if sort_by not in SORT_MODES:
            raise ValueError(f"Unsupported sort mode: {sort_by!r}")

        key = session_key(term, is_subcategory, location)
        with self._lock:
            if key != self._key:
                logger.info("Starting new search session term=%r location=%s", term.strip(), location.kind)
                self._key = key
                self._items = []
                self._last_page = None
                self._pages_fetched = 0
                self.last_error = None
            self._term = term.strip()
            self._is_subcategory = is_subcategory
            self._location = location
            self._sort_by = sort_by
            seq = self._begin_request()

        self._save_context()
        return self._fetch(seq, 0)

    def load_more(self) -> Optional[ResourcePage]:
        """Fetch the next page. No-op while a request is in flight or after the last page."""
        with self._lock:
            if self._key is None or self._in_flight or not self.has_more:
                return None
            offset = self.next_offset
            seq = self._begin_request()
        return self._fetch(seq, offset)

    def set_sort(self, sort_by: str) -> List[Resource]:
        """Re-rank locally without refetching."""
        if sort_by not in SORT_MODES:
            raise ValueError(f"Unsupported sort mode: {sort_by!r}")
        with self._lock:
            self._sort_by = sort_by
            if sort_by == SORT_DISTANCE and self._location is not None:
                self._items = annotate_distances(self._items, location_origin(self._location))
        return self.results()

    def clear(self) -> None:
        with self._lock:
            self._sequence += 1
            self._key = None
            self._term = ""
            self._location = None
            self._items = []
            self._last_page = None
            self._pages_fetched = 0
            self._in_flight = False
            self.last_error = None
        if self._store is not None:
            self._store.remove(SEARCH_CONTEXT_KEY)

    def resume(self) -> Optional[ResourcePage]:
        """Restart the search saved in the store, e.g. after navigating back."""
        context = self.saved_context()
        if context is None:
            return None
        return self.start(
            context["term"],
            context["location"],
            is_subcategory=context["is_subcategory"],
            sort_by=context["sort_by"],
        )

    # ---------- Persistence ----------

    def saved_context(self) -> Optional[Dict[str, Any]]:
        if self._store is None:
            return None
        raw = self._store.get(SEARCH_CONTEXT_KEY)
        if not raw:
            return None
        try:
            data = json.loads(raw)
            return {
                "term": str(data["term"]),
                "is_subcategory": bool(data.get("isSubcategory", False)),
                "location": location_state_from_dict(data.get("location")),
                "sort_by": data.get("sortBy") if data.get("sortBy") in SORT_MODES else SORT_RELEVANCE,
            }
        except (ValueError, KeyError, TypeError) as exc:
            logger.warning("Ignoring unreadable search context: %s", exc)
            return None

    def recent_resource(self, resource_id: str) -> Optional[Resource]:
        if self._store is None:
            return None
        raw = self._store.get(RECENT_RESOURCES_KEY)
        if not raw:
            return None
        try:
            entries = json.loads(raw)
        except ValueError:
            logger.warning("Ignoring unreadable recent resources cache")
            return None
        for entry in entries if isinstance(entries, list) else []:
            if isinstance(entry, dict) and entry.get("id") == resource_id:
                return Resource.from_dict(entry)
        return None

    # ---------- Internals ----------

    def _begin_request(self) -> int:
        self._sequence += 1
        self._in_flight = True
        return self._sequence

    def _fetch(self, seq: int, offset: int) -> Optional[ResourcePage]:
        with self._lock:
            term, location = self._term, self._location
            is_subcategory, sort_by = self._is_subcategory, self._sort_by
        try:
            page = self._fetch_page(
                term,
                location=location,
                is_subcategory=is_subcategory,
                sort_by=sort_by,
                offset=offset,
                page_size=self.page_size,
            )
        except Exception as exc:
            with self._lock:
                if seq != self._sequence:
                    logger.info("Ignoring failure of superseded request (seq=%s): %s", seq, exc)
                    return None
                self._in_flight = False
                self.last_error = exc
            logger.warning("Search page fetch failed term=%r offset=%s: %s", term, offset, exc)
            raise

        with self._lock:
            if seq != self._sequence:
                logger.info("Discarding stale page term=%r offset=%s (seq=%s, current=%s)", term, offset, seq, self._sequence)
                return None
            incoming = list(page.items)
            if self._sort_by == SORT_DISTANCE and location is not None:
                if any(item.distance_miles is None for item in incoming):
                    incoming = annotate_distances(incoming, location_origin(location))
            before = len(self._items)
            self._items = dedupe([*self._items, *incoming])
            self._last_page = page
            self._pages_fetched += 1
            self._in_flight = False
            self.last_error = None
            added = len(self._items) - before

        logger.info(
            "Merged page offset=%s: %d new of %d fetched, has_more=%s", offset, added, len(page.items), page.has_more
        )
        self._save_recent()
        return page

    def _save_context(self) -> None:
        if self._store is None or self._location is None:
            return
        context = {
            "term": self._term,
            "isSubcategory": self._is_subcategory,
            "location": self._location.to_dict(),
            "sortBy": self._sort_by,
        }
        self._store.set(SEARCH_CONTEXT_KEY, json.dumps(context))

    def _save_recent(self) -> None:
        if self._store is None:
            return
        recent = [item.to_dict() for item in self._items[-RECENT_LIMIT:]]
        self._store.set(RECENT_RESOURCES_KEY, json.dumps(recent))
