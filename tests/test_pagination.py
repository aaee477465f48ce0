import json

import pytest

from resource_finder.core.errors import NetworkError
from resource_finder.core.pagination import RECENT_RESOURCES_KEY, SEARCH_CONTEXT_KEY, SearchSession
from resource_finder.core.store import MemoryStore
from resource_finder.models import Coordinate, LocationNone, Resource, ResourcePage, ZipCodeLocation

SB_ZIP = ZipCodeLocation(zip_code="93101", location=Coordinate(lat=34.41925, lng=-119.70808))


class FakeDirectory:
    """Serves canned pages keyed by (term, offset)."""

    def __init__(self, pages, total):
        self.pages = pages
        self.total = total
        self.calls = []
        self.hooks = {}

    def __call__(self, term, *, location, is_subcategory, sort_by, offset, page_size):
        self.calls.append({"term": term, "offset": offset, "size": page_size, "sort_by": sort_by})
        key = (term.lower(), offset)
        hook = self.hooks.pop(key, None)
        if hook is not None:
            hook()
        entry = self.pages[key]
        if isinstance(entry, Exception):
            raise entry
        items, total = entry if isinstance(entry, tuple) else (entry, self.total)
        return ResourcePage(
            items=tuple(Resource(id=i, name=i.upper(), zip_code=zip_of(i)) for i in items),
            total=total,
            offset=offset,
        )


def zip_of(resource_id):
    return {"near": "93101", "far": "93108"}.get(resource_id)


def ids(items):
    return [r.id for r in items]


def test_pages_accumulate_until_exhausted():
    directory = FakeDirectory({("food", 0): ["a", "b"], ("food", 2): ["c", "d"], ("food", 4): ["e"]}, total=5)
    session = SearchSession(fetch_page=directory, page_size=2)

    session.start("food", SB_ZIP)
    assert ids(session.items) == ["a", "b"]
    assert session.has_more is True

    session.load_more()
    session.load_more()

    assert ids(session.items) == ["a", "b", "c", "d", "e"]
    assert session.has_more is False
    assert session.total == 5
    assert [c["offset"] for c in directory.calls] == [0, 2, 4]

    assert session.load_more() is None
    assert len(directory.calls) == 3


def test_has_more_follows_latest_page():
    directory = FakeDirectory({("food", 0): (["a", "b"], 10), ("food", 2): (["c", "d"], 4)}, total=0)
    session = SearchSession(fetch_page=directory, page_size=2)

    session.start("food", SB_ZIP)
    assert session.has_more is True
    session.load_more()

    assert session.has_more is False
    assert session.total == 4


def test_reordered_pages_do_not_duplicate():
    directory = FakeDirectory({("food", 0): ["a", "b"], ("food", 2): ["b", "c"]}, total=6)
    session = SearchSession(fetch_page=directory, page_size=2)

    session.start("food", SB_ZIP)
    session.load_more()

    assert ids(session.items) == ["a", "b", "c"]
    assert session.next_offset == 4


def test_restarting_same_search_merges_into_existing_items():
    directory = FakeDirectory({("food", 0): ["a", "b"], ("food", 2): ["c", "d"]}, total=6)
    session = SearchSession(fetch_page=directory, page_size=2)
    session.start("food", SB_ZIP)
    session.load_more()

    directory.pages[("food", 0)] = ["x", "a"]
    session.start("Food ", SB_ZIP)

    assert ids(session.items) == ["a", "b", "c", "d", "x"]


def test_new_term_or_location_resets_accumulation():
    directory = FakeDirectory(
        {("food", 0): ["a", "b"], ("housing", 0): ["h1"], ("housing", 1): ["h2"]}, total=2
    )
    session = SearchSession(fetch_page=directory, page_size=2)

    session.start("food", SB_ZIP)
    session.start("housing", SB_ZIP)
    assert ids(session.items) == ["h1"]

    session.start("housing", LocationNone())
    assert ids(session.items) == ["h1"]
    assert session.pages_fetched == 1


def test_failed_load_more_keeps_items_and_allows_retry():
    directory = FakeDirectory({("food", 0): ["a", "b"], ("food", 2): NetworkError("offline")}, total=4)
    session = SearchSession(fetch_page=directory, page_size=2)
    session.start("food", SB_ZIP)

    with pytest.raises(NetworkError):
        session.load_more()

    assert ids(session.items) == ["a", "b"]
    assert session.is_loading is False
    assert isinstance(session.last_error, NetworkError)
    assert session.has_more is True

    directory.pages[("food", 2)] = ["c", "d"]
    session.load_more()
    assert ids(session.items) == ["a", "b", "c", "d"]
    assert session.last_error is None


def test_stale_response_is_discarded():
    directory = FakeDirectory({("food", 0): ["a", "b"], ("housing", 0): ["h1", "h2"]}, total=2)
    session = SearchSession(fetch_page=directory, page_size=2)
    # The user switches to housing while the food request is still outstanding.
    directory.hooks[("food", 0)] = lambda: session.start("housing", SB_ZIP)

    assert session.start("food", SB_ZIP) is None

    assert session.term == "housing"
    assert ids(session.items) == ["h1", "h2"]


def test_load_more_is_noop_while_request_in_flight():
    directory = FakeDirectory({("food", 0): ["a", "b"], ("food", 2): ["c", "d"], ("food", 4): ["e"]}, total=5)
    session = SearchSession(fetch_page=directory, page_size=2)
    session.start("food", SB_ZIP)
    nested = []
    directory.hooks[("food", 2)] = lambda: nested.append((session.is_loading, session.load_more()))

    session.load_more()

    assert nested == [(True, None)]
    assert [c["offset"] for c in directory.calls] == [0, 2]


def test_load_more_without_search_is_noop():
    session = SearchSession(fetch_page=FakeDirectory({}, total=0), page_size=2)
    assert session.load_more() is None


def test_start_validates_arguments():
    session = SearchSession(fetch_page=FakeDirectory({}, total=0), page_size=2)
    with pytest.raises(ValueError):
        session.start("  ", SB_ZIP)
    with pytest.raises(ValueError):
        session.start("food", SB_ZIP, sort_by="rating")


def test_set_sort_distance_annotates_and_orders():
    directory = FakeDirectory({("food", 0): ["plain", "far", "near"]}, total=3)
    session = SearchSession(fetch_page=directory, page_size=3)
    session.start("food", SB_ZIP)

    ordered = session.set_sort("distance")

    assert ids(ordered) == ["near", "far", "plain"]
    assert ordered[1].distance_miles == pytest.approx(6.29, abs=0.05)
    assert ids(session.set_sort("name")) == ["far", "near", "plain"]
    assert ids(session.set_sort("relevance")) == ["plain", "far", "near"]


def test_context_and_recent_resources_are_persisted():
    store = MemoryStore()
    directory = FakeDirectory({("housing", 0): ["a", "b"]}, total=2)
    session = SearchSession(fetch_page=directory, page_size=2, store=store)

    session.start("housing", SB_ZIP, is_subcategory=False, sort_by="name")

    context = json.loads(store.get(SEARCH_CONTEXT_KEY))
    assert context["term"] == "housing"
    assert context["location"]["zipCode"] == "93101"
    assert [r["id"] for r in json.loads(store.get(RECENT_RESOURCES_KEY))] == ["a", "b"]

    restored = SearchSession(fetch_page=directory, page_size=2, store=store)
    assert restored.recent_resource("b").name == "B"
    assert restored.recent_resource("zzz") is None

    restored.resume()
    assert restored.sort_by == "name"
    assert restored.location == SB_ZIP
    assert ids(restored.items) == ["a", "b"]


def test_clear_forgets_search_and_context():
    store = MemoryStore()
    directory = FakeDirectory({("food", 0): ["a"]}, total=1)
    session = SearchSession(fetch_page=directory, page_size=2, store=store)
    session.start("food", SB_ZIP)

    session.clear()

    assert session.items == []
    assert session.has_more is False
    assert store.get(SEARCH_CONTEXT_KEY) is None
    assert session.resume() is None
