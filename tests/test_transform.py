import pytest

from resource_finder.core.errors import MalformedResponseError
from resource_finder.etl import transform


def test_to_resource_prefers_physical_fields():
    raw = {
        "idServiceAtLocation": "sal-1",
        "idService": "svc-1",
        "nameService": "Emergency Shelter",
        "nameOrganization": "Casa Esperanza",
        "descriptionService": "  Beds nightly  ",
        "address1Physical": "816 Cacique St",
        "cityPhysical": "Santa Barbara",
        "stateProvincePhysical": "CA",
        "postalCodePhysical": "93103-1234",
        "phoneNumbers": [{"number": " 805-555-0100 "}],
        "urlOrganization": "https://example.org",
        "taxonomies": [{"name": "Homeless Shelter"}, {"code": "BH"}],
        "latitude": "34.42",
        "longitude": None,
    }

    resource = transform.to_resource(raw)

    assert resource.id == "sal:sal-1"
    assert resource.name == "Emergency Shelter"
    assert resource.organization == "Casa Esperanza"
    assert resource.description == "Beds nightly"
    assert resource.address == "816 Cacique St, Santa Barbara, CA, 93103"
    assert resource.zip_code == "93103"
    assert resource.phone == "805-555-0100"
    assert resource.website == "https://example.org"
    assert resource.services == ["Homeless Shelter"]
    assert resource.latitude == 34.42
    assert resource.longitude is None
    assert resource.service_at_location_id == "sal-1"
    assert resource.raw_snapshot is raw


def test_to_resource_falls_back_to_nested_address_and_defaults():
    raw = {
        "id": 42,
        "address": {"streetAddress": "1 Main", "city": "Goleta", "postalCode": "93117"},
        "phone": "805-555-0199",
        "description": "x" * 600,
    }

    resource = transform.to_resource(raw)

    assert resource.id == "id:42"
    assert resource.name == "Unknown Service"
    assert resource.address == "1 Main, Goleta, 93117"
    assert resource.phone == "805-555-0199"
    assert len(resource.description) == 500
    assert resource.services == []


@pytest.mark.parametrize(
    "raw, expected",
    [
        ({"idServiceAtLocation": "a", "idService": "b", "id": "c"}, "sal:a"),
        ({"idService": "b", "id": "c"}, "svc:b"),
        ({"idServiceAtLocation": " ", "id": "c"}, "id:c"),
        ({"nameService": "Pantry", "address1Physical": "5 Elm"}, "name:pantry|5 elm"),
    ],
)
def test_resource_key_precedence(raw, expected):
    assert transform.resource_key(raw) == expected


def test_normalize_page_reads_results_and_total():
    payload = {"results": [{"id": "1"}, "junk", {"id": "2"}], "count": "57"}

    page = transform.normalize_page(payload, offset=20)

    assert [r.id for r in page.items] == ["id:1", "id:2"]
    assert page.total == 57
    assert page.offset == 20
    assert page.next_offset == 22
    assert page.has_more is True


def test_normalize_page_total_defaults_to_item_count():
    page = transform.normalize_page({"resources": [{"id": "1"}]}, offset=0)
    assert page.total == 1
    assert page.has_more is False


def test_normalize_page_empty_list_is_a_valid_empty_page():
    page = transform.normalize_page({"resources": [], "total": 0}, offset=0)
    assert page.items == ()
    assert page.has_more is False


@pytest.mark.parametrize("payload", [None, [], "oops", {"total": 3}, {"resources": {"id": "1"}}])
def test_normalize_page_rejects_malformed_payloads(payload):
    with pytest.raises(MalformedResponseError):
        transform.normalize_page(payload, offset=0)


def test_normalize_zip():
    assert transform.normalize_zip("93101-1234") == "93101"
    assert transform.normalize_zip(93101) == "93101"
    assert transform.normalize_zip("931") is None
    assert transform.normalize_zip(None) is None
