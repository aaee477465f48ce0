import pytest

from resource_finder.core import taxonomy
from resource_finder.models import CategoryDescriptor


def test_every_category_has_code_xor_keywords():
    for category in taxonomy.list_categories():
        assert bool(category.taxonomy_code) != bool(category.keywords)


def test_category_descriptor_rejects_both_or_neither():
    with pytest.raises(ValueError):
        CategoryDescriptor(id="x", name="X", taxonomy_code="BH", keywords=("x",))
    with pytest.raises(ValueError):
        CategoryDescriptor(id="x", name="X")


def test_resolve_category_is_idempotent_on_ids():
    for category in taxonomy.list_categories():
        assert taxonomy.resolve_category(category.id) == category
        assert taxonomy.resolve_category(f"  {category.id.upper()} ") == category


def test_resolve_category_keyword_substring():
    food = taxonomy.resolve_category("Food Pantry Near Me")
    assert food is not None and food.id == "food"
    assert taxonomy.resolve_category("pantr").id == "food"
    assert taxonomy.resolve_category("need therapy today").id == "mental-wellness"


def test_resolve_category_taxonomy_code_only_exact():
    assert taxonomy.resolve_category("BH").id == "housing"
    assert taxonomy.resolve_category("bh").id == "housing"
    assert taxonomy.resolve_category("housing").id == "housing"
    hous = taxonomy.resolve_category("hous")
    assert hous is None or hous.id != "housing"
    assert taxonomy.resolve_category("BH-1800") is None


def test_resolve_category_unknown_or_blank():
    assert taxonomy.resolve_category("zzzz") is None
    assert taxonomy.resolve_category("   ") is None
    assert taxonomy.resolve_category(None) is None


def test_resolve_category_first_match_wins_in_table_order():
    # "food" and "household" keywords both appear; food is declared first.
    assert taxonomy.resolve_category("food for the household").id == "food"


def test_get_subcategory_taxonomy_code():
    assert taxonomy.get_subcategory_taxonomy_code("housing", "homeless-shelters") == "BH-1800.8500"
    assert taxonomy.get_subcategory_taxonomy_code("HOUSING", "Homeless-Shelters") == "BH-1800.8500"
    assert taxonomy.get_subcategory_taxonomy_code("housing", "nope") is None
    assert taxonomy.get_subcategory_taxonomy_code("nope", "homeless-shelters") is None


def test_resolve_subcategory_by_name_or_id():
    assert taxonomy.resolve_subcategory("Food Pantries").taxonomy_code == "BD-1800.2000"
    assert taxonomy.resolve_subcategory("calfresh").category_id == "food"
    assert taxonomy.resolve_subcategory("unknown") is None


def test_get_subcategories():
    subs = taxonomy.get_subcategories("food")
    assert subs and all(sub.category_id == "food" for sub in subs)
    assert taxonomy.get_subcategories("unknown") == []


@pytest.mark.parametrize("term", ["BH", "BD-5000", "BH-1800.8500", "BH-1800.1500-100", "bd-5000"])
def test_is_taxonomy_code_accepts(term):
    assert taxonomy.is_taxonomy_code(term)


@pytest.mark.parametrize("term", ["food", "BH-18", "", "housing help"])
def test_is_taxonomy_code_rejects(term):
    assert not taxonomy.is_taxonomy_code(term)
