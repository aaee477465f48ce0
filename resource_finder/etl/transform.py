"""Utilities for normalizing 211 directory responses into Resource pages."""

import logging
import re
from typing import Any, Dict, List, Optional

from resource_finder.core.errors import MalformedResponseError
from resource_finder.models import Resource, ResourcePage

logger = logging.getLogger(__name__)

_ITEM_FIELDS = ("resources", "results", "items")
_TOTAL_FIELDS = ("total", "count", "totalResults")
_NON_DIGITS = re.compile(r"\D")


def normalize_page(payload: Any, offset: int) -> ResourcePage:
    """Turn a raw search payload into a ResourcePage.

    A missing or non-list items field is a contract violation, not an empty
    result, and raises MalformedResponseError.
    """
    if not isinstance(payload, dict):
        raise MalformedResponseError(f"Expected a JSON object, got {type(payload).__name__}")

    raw_items = _extract_items(payload)
    if raw_items is None:
        logger.error("Directory response missing items array. keys=%s", list(payload.keys())[:10])
        raise MalformedResponseError("Directory response has no resources/results array")

    items: List[Resource] = []
    for raw in raw_items:
        if not isinstance(raw, dict):
            logger.debug("Skipping non-object result: %r", raw)
            continue
        items.append(to_resource(raw))

    total = _extract_total(payload)
    if total is None:
        total = len(items)

    return ResourcePage(items=tuple(items), total=total, offset=offset)


def _extract_items(payload: Dict[str, Any]) -> Optional[List[Any]]:
    for name in _ITEM_FIELDS:
        if name in payload:
            value = payload[name]
            return value if isinstance(value, list) else None
    return None


def _extract_total(payload: Dict[str, Any]) -> Optional[int]:
    for name in _TOTAL_FIELDS:
        value = payload.get(name)
        if isinstance(value, bool):
            continue
        if isinstance(value, (int, float)):
            return int(value)
        if isinstance(value, str) and value.strip().isdigit():
            return int(value.strip())
    return None


def resource_key(raw: Dict[str, Any]) -> str:
    """Composite dedup key: service-at-location id, then service id, then plain id."""
    for prefix, name in (("sal", "idServiceAtLocation"), ("svc", "idService"), ("id", "id")):
        value = _strip_or_none(raw.get(name))
        if value:
            return f"{prefix}:{value}"

    name = (_first(raw, "nameServiceAtLocation", "nameService", "nameOrganization", "name") or "").lower()
    address = (_first(raw, "address1Physical", "address1") or "").lower()
    return f"name:{name}|{address}"


def normalize_zip(value: Any) -> Optional[str]:
    if value is None:
        return None
    digits = _NON_DIGITS.sub("", str(value))[:5]
    return digits if len(digits) == 5 else None


def to_resource(raw: Dict[str, Any]) -> Resource:
    address_obj = raw.get("address") if isinstance(raw.get("address"), dict) else {}

    street = _first(raw, "address1Physical", "address1") or _strip_or_none(address_obj.get("streetAddress"))
    city = _first(raw, "cityPhysical", "city") or _strip_or_none(address_obj.get("city"))
    state = _first(raw, "stateProvincePhysical", "stateProvince") or _strip_or_none(address_obj.get("stateProvince"))
    zip_code = normalize_zip(
        _first(raw, "postalCodePhysical", "postalCode") or address_obj.get("postalCode")
    )
    full_address = ", ".join(filter(None, [street, city, state, zip_code])) or _first(raw, "nameLocation")

    taxonomies = raw.get("taxonomies") if isinstance(raw.get("taxonomies"), list) else []
    services = [str(t.get("name")).strip() for t in taxonomies if isinstance(t, dict) and t.get("name")]

    gps = raw.get("location") if isinstance(raw.get("location"), dict) else {}

    return Resource(
        id=resource_key(raw),
        name=_first(raw, "nameService", "nameServiceAtLocation", "nameOrganization", "name") or "Unknown Service",
        organization=_first(raw, "nameOrganization"),
        description=(
            _first(raw, "descriptionService", "descriptionOrganization", "descriptionServiceAtLocation", "description")
            or ""
        )[:500],
        address=full_address,
        zip_code=zip_code,
        phone=_first_phone(raw),
        website=_first(raw, "urlOrganization", "urlService", "website", "url"),
        hours=_first(raw, "scheduleText", "hours"),
        latitude=_safe_float(raw.get("latitude", gps.get("latitude"))),
        longitude=_safe_float(raw.get("longitude", gps.get("longitude"))),
        services=services,
        service_at_location_id=_strip_or_none(raw.get("idServiceAtLocation")),
        service_id=_strip_or_none(raw.get("idService")),
        raw_snapshot=raw,
    )


def _first_phone(raw: Dict[str, Any]) -> Optional[str]:
    numbers = raw.get("phoneNumbers")
    if isinstance(numbers, list):
        for entry in numbers:
            if isinstance(entry, dict):
                entry = entry.get("number")
            value = _strip_or_none(entry)
            if value:
                return value
    phone = raw.get("phone")
    if isinstance(phone, list):
        return _first_phone({"phoneNumbers": phone})
    return _strip_or_none(phone)


def _first(raw: Dict[str, Any], *names: str) -> Optional[str]:
    for name in names:
        value = _strip_or_none(raw.get(name))
        if value:
            return value
    return None


def _strip_or_none(value: Any) -> Optional[str]:
    if value is None or isinstance(value, (dict, list)):
        return None
    value_str = str(value).strip()
    return value_str or None


def _safe_float(value: Any) -> Optional[float]:
    try:
        if value is None:
            return None
        return float(value)
    except (TypeError, ValueError):
        return None
