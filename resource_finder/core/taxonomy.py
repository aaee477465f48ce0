"""Category and subcategory lookups for Santa Barbara 211 searches.

Every category is addressed either by an AIRS/211 taxonomy code or by a set
of search keywords. Which of the two a category carries decides how the
directory query is encoded.
"""

from __future__ import annotations

import logging
import re
from typing import Dict, List, Optional, Tuple

from resource_finder.models import CategoryDescriptor, SubcategoryDescriptor

logger = logging.getLogger(__name__)

# e.g. "BH", "BD-5000", "BH-1800.8500", "BH-1800.1500-100"
_TAXONOMY_CODE_RE = re.compile(r"^[A-Z]{1,2}(-\d{4}(\.\d{4}(-\d{3})?)?)?$")

_CATEGORY_ROWS: Tuple[Dict[str, object], ...] = (
    {"id": "food", "name": "Food", "icon": "food",
     "keywords": ("food", "meals", "pantry", "groceries", "nutrition")},
    {"id": "housing", "name": "Housing", "icon": "housing", "taxonomy_code": "BH"},
    {"id": "healthcare", "name": "Health Care", "icon": "healthcare", "taxonomy_code": "LN"},
    {"id": "mental-wellness", "name": "Mental Wellness", "icon": "mental-wellness",
     "keywords": ("mental health", "counseling", "therapy", "crisis")},
    {"id": "substance-use", "name": "Substance Use", "icon": "substance-use",
     "keywords": ("substance", "addiction", "alcohol", "detox")},
    {"id": "children-family", "name": "Children & Family", "icon": "children-family", "taxonomy_code": "PH"},
    {"id": "young-adults", "name": "Young Adults", "icon": "young-adults",
     "keywords": ("youth", "young adults", "teens", "mentoring")},
    {"id": "finance-employment", "name": "Finance & Employment", "icon": "finance-employment",
     "keywords": ("employment", "jobs", "finance", "career", "vocational")},
    {"id": "education", "name": "Education", "icon": "education",
     "keywords": ("education", "tutoring", "literacy", "school")},
    {"id": "legal-assistance", "name": "Legal Assistance", "icon": "legal-assistance", "taxonomy_code": "FT"},
    {"id": "utilities", "name": "Utilities", "icon": "utilities", "taxonomy_code": "BV"},
    {"id": "transportation", "name": "Transportation", "icon": "transportation", "taxonomy_code": "BT"},
    {"id": "hygiene-household", "name": "Hygiene & Household", "icon": "hygiene-household",
     "keywords": ("hygiene", "household", "diapers", "toiletries")},
)

_SUBCATEGORY_ROWS: Dict[str, Tuple[Tuple[str, str, str], ...]] = {
    "food": (
        ("food-pantries", "Food Pantries", "BD-1800.2000"),
        ("hot-meals", "Hot Meals", "BD-5000"),
        ("calfresh", "CalFresh (Food Stamps)", "NL-6000.2000"),
        ("wic", "Women, Infants, & Children (WIC)", "NL-6000.9500"),
        ("senior-nutrition", "Senior Nutrition Programs", "BD-5000.8000"),
        ("school-meals", "School Meal Programs", "BD-1800.7500"),
    ),
    "housing": (
        ("domestic-violence-shelters", "Domestic Violence Shelters", "BH-1800.1500-100"),
        ("homeless-shelters", "Homeless Shelters", "BH-1800.8500"),
        ("low-income-rental", "Low Income Rental Housing", "BH-7000.4600"),
        ("rent-payment-assistance", "Rent Payment Assistance", "BH-3800.7000"),
        ("section-8-voucher", "Section 8 Voucher / Housing Authority", "BH-8300.3000"),
        ("youth-shelters", "Youth Shelters", "BH-1800.1500-960"),
    ),
    "healthcare": (
        ("community-clinics", "Community Clinics", "LN-1500"),
        ("dental-care", "Dental Care", "LV-1600"),
        ("health-insurance", "Health Insurance", "NS-8000.3500"),
        ("prescription-assistance", "Prescription Medication Assistance", "LH-6700"),
    ),
    "mental-wellness": (
        ("crisis-intervention", "Crisis Intervention", "RP-1500"),
        ("counseling-services", "Counseling Services", "RP-1400"),
        ("support-groups", "Support Groups", "PN-8100"),
    ),
    "substance-use": (
        ("detoxification", "Detoxification", "RX-1700"),
        ("substance-use-counseling", "Substance Use Counseling", "RX-8450.1000"),
        ("residential-treatment", "Residential Treatment", "RX-8450.7000"),
    ),
    "children-family": (
        ("child-care", "Child Care", "PH-1250"),
        ("parenting-education", "Parenting Education", "PH-6100"),
        ("family-counseling", "Family Counseling", "RP-1400.8000-200"),
    ),
    "young-adults": (
        ("youth-development", "Youth Development", "PS-9800"),
        ("mentoring-programs", "Mentoring Programs", "PH-5000"),
        ("supervised-living-youth", "Supervised Living for Older Youth", "PH-6300.8000"),
    ),
    "finance-employment": (
        ("career-counseling", "Career Counseling", "HL-2500.8035"),
        ("job-assistance", "Job Assistance Centers", "ND-1500"),
        ("vocational-rehabilitation", "Vocational Rehabilitation", "ND-9000"),
        ("general-relief", "General Relief", "NL-1000.2500"),
    ),
    "education": (
        ("adult-basic-education", "Adult Basic Education", "HH-0500"),
        ("esl", "English as a Second Language", "HH-0500.2000"),
        ("technical-trade-schools", "Technical/Trade Schools", "HD-6000.9000"),
    ),
    "legal-assistance": (
        ("legal-aid", "Legal Aid", "FT-3200"),
        ("immigration-assistance", "Immigration Assistance", "FT-3700"),
        ("housing-discrimination", "Housing Discrimination", "FT-1800.3000"),
    ),
    "utilities": (
        ("utility-payment-assistance", "Utility Payment Assistance", "BV-8900.9300"),
        ("energy-efficient-improvement", "Energy Efficient Home Improvement Assistance", "NL-6000.9500"),
    ),
    "transportation": (
        ("bus-fare", "Bus Fare", "BT-8300.1000"),
        ("medical-transportation", "Medical Appointment Transportation", "BT-4500.6500-500"),
        ("paratransit", "Paratransit Programs", "BT-4500.6500-650"),
    ),
    "hygiene-household": (
        ("clothing", "Clothing", "BM-6500.1500"),
        ("furniture", "Furniture", "BM-3000.2000"),
        ("bathing-facilities", "Bathing Facilities", "BH-1800.3500"),
        ("temporary-mailing", "Temporary Mailing Address", "BM-6500.6500-850"),
    ),
}


def _build_categories() -> Tuple[CategoryDescriptor, ...]:
    categories = []
    for row in _CATEGORY_ROWS:
        categories.append(
            CategoryDescriptor(
                id=str(row["id"]),
                name=str(row["name"]),
                icon=row.get("icon"),  # type: ignore[arg-type]
                taxonomy_code=row.get("taxonomy_code"),  # type: ignore[arg-type]
                keywords=tuple(row.get("keywords", ())),  # type: ignore[arg-type]
            )
        )
    return tuple(categories)


def _build_subcategories() -> Dict[str, Tuple[SubcategoryDescriptor, ...]]:
    return {
        category_id: tuple(
            SubcategoryDescriptor(id=sub_id, name=name, taxonomy_code=code, category_id=category_id)
            for sub_id, name, code in rows
        )
        for category_id, rows in _SUBCATEGORY_ROWS.items()
    }


CATEGORIES: Tuple[CategoryDescriptor, ...] = _build_categories()
SUBCATEGORIES: Dict[str, Tuple[SubcategoryDescriptor, ...]] = _build_subcategories()
_CATEGORIES_BY_ID: Dict[str, CategoryDescriptor] = {c.id: c for c in CATEGORIES}


def _clean(term: Optional[str]) -> str:
    return (term or "").strip().lower()


def list_categories() -> List[CategoryDescriptor]:
    return list(CATEGORIES)


def get_category(category_id: str) -> Optional[CategoryDescriptor]:
    return _CATEGORIES_BY_ID.get(_clean(category_id))


def get_subcategories(category_id: str) -> List[SubcategoryDescriptor]:
    return list(SUBCATEGORIES.get(_clean(category_id), ()))


def resolve_category(term: Optional[str]) -> Optional[CategoryDescriptor]:
    """Map a category id, keyword phrase or taxonomy code to a category.

    Tried in order: exact id, keyword substring in either direction (first
    category in table order wins), exact taxonomy code.
    """
    cleaned = _clean(term)
    if not cleaned:
        return None

    category = _CATEGORIES_BY_ID.get(cleaned)
    if category is not None:
        return category

    for category in CATEGORIES:
        for keyword in category.keywords:
            kw = keyword.lower()
            if kw in cleaned or cleaned in kw:
                logger.debug("Term %r matched keyword %r of %s", cleaned, kw, category.id)
                return category

    for category in CATEGORIES:
        if category.taxonomy_code and category.taxonomy_code.lower() == cleaned:
            return category

    return None


def get_subcategory_taxonomy_code(category_id: str, subcategory_id: str) -> Optional[str]:
    wanted = _clean(subcategory_id)
    for sub in SUBCATEGORIES.get(_clean(category_id), ()):
        if sub.id == wanted:
            return sub.taxonomy_code
    return None


def resolve_subcategory(term: Optional[str]) -> Optional[SubcategoryDescriptor]:
    """Find a subcategory by id or display name across all categories."""
    cleaned = _clean(term)
    if not cleaned:
        return None
    for subs in SUBCATEGORIES.values():
        for sub in subs:
            if sub.id == cleaned or sub.name.lower() == cleaned:
                return sub
    return None


def is_taxonomy_code(term: Optional[str]) -> bool:
    return bool(_TAXONOMY_CODE_RE.match((term or "").strip().upper()))
