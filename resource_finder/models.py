"""Core data models shared by the resource discovery pipeline."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple, Union

_ZIP_RE = re.compile(r"^\d{5}$")

SORT_RELEVANCE = "relevance"
SORT_DISTANCE = "distance"
SORT_NAME = "name"
SORT_MODES = (SORT_RELEVANCE, SORT_DISTANCE, SORT_NAME)


@dataclass(frozen=True, slots=True)
class Coordinate:
    lat: float
    lng: float


@dataclass(frozen=True, slots=True)
class PartialAddress:
    """Address fragments recovered for a device reading; every field may be missing."""

    city: Optional[str] = None
    state: Optional[str] = None
    country: Optional[str] = None
    zip_code: Optional[str] = None

    def to_dict(self) -> Dict[str, Optional[str]]:
        return {"city": self.city, "state": self.state, "country": self.country, "zipCode": self.zip_code}


# ---------- Location state ----------


@dataclass(frozen=True, slots=True)
class LocationNone:
    kind = "none"

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.kind}


@dataclass(frozen=True, slots=True)
class LocationLoading:
    kind = "loading"

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.kind}


@dataclass(frozen=True, slots=True)
class LocationErrorState:
    message: str
    kind = "error"

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.kind, "message": self.message}


@dataclass(frozen=True, slots=True)
class ZipCodeLocation:
    """Location resolved from a postal code. Always carries a coordinate."""

    zip_code: str
    location: Coordinate
    kind = "zipCode"

    def __post_init__(self) -> None:
        if not isinstance(self.zip_code, str) or not _ZIP_RE.match(self.zip_code):
            raise ValueError(f"zip_code must be 5 digits, got {self.zip_code!r}")
        if not isinstance(self.location, Coordinate):
            raise ValueError("ZipCodeLocation requires a resolved Coordinate")

    @property
    def coordinate(self) -> Coordinate:
        return self.location

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.kind,
            "zipCode": self.zip_code,
            "location": {"lat": self.location.lat, "lng": self.location.lng},
        }


@dataclass(frozen=True, slots=True)
class CoordinatesLocation:
    latitude: float
    longitude: float
    location: Optional[PartialAddress] = None
    kind = "coordinates"

    @property
    def coordinate(self) -> Coordinate:
        return Coordinate(lat=self.latitude, lng=self.longitude)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.kind,
            "latitude": self.latitude,
            "longitude": self.longitude,
            "location": self.location.to_dict() if self.location else None,
        }


LocationState = Union[LocationNone, LocationLoading, LocationErrorState, ZipCodeLocation, CoordinatesLocation]


def location_state_from_dict(data: Optional[Dict[str, Any]]) -> LocationState:
    """Rebuild a LocationState from its ``to_dict`` form. Raises ValueError on unknown shapes."""
    if not data:
        return LocationNone()

    kind = data.get("type")
    if kind == "none":
        return LocationNone()
    if kind == "loading":
        return LocationLoading()
    if kind == "error":
        return LocationErrorState(message=str(data.get("message") or ""))
    if kind == "zipCode":
        loc = data.get("location") or {}
        return ZipCodeLocation(
            zip_code=str(data.get("zipCode") or ""),
            location=Coordinate(lat=float(loc["lat"]), lng=float(loc["lng"])),
        )
    if kind == "coordinates":
        address = data.get("location")
        partial = None
        if isinstance(address, dict):
            partial = PartialAddress(
                city=address.get("city"),
                state=address.get("state"),
                country=address.get("country"),
                zip_code=address.get("zipCode"),
            )
        return CoordinatesLocation(
            latitude=float(data["latitude"]),
            longitude=float(data["longitude"]),
            location=partial,
        )
    raise ValueError(f"Unknown location state type: {kind!r}")


def location_origin(state: LocationState) -> Optional[Coordinate]:
    """Coordinate to measure distances from, if the state has one."""
    if isinstance(state, (ZipCodeLocation, CoordinatesLocation)):
        return state.coordinate
    return None


# ---------- Taxonomy ----------


@dataclass(frozen=True, slots=True)
class CategoryDescriptor:
    """Top-level category. Addressed either by taxonomy code or by keywords, never both."""

    id: str
    name: str
    icon: Optional[str] = None
    taxonomy_code: Optional[str] = None
    keywords: Tuple[str, ...] = ()

    def __post_init__(self) -> None:
        has_code = bool(self.taxonomy_code)
        has_keywords = bool(self.keywords)
        if has_code == has_keywords:
            raise ValueError(f"Category {self.id!r} needs exactly one of taxonomy_code or keywords")

    @property
    def is_keyword_search(self) -> bool:
        return not self.taxonomy_code

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"id": self.id, "name": self.name, "icon": self.icon}
        if self.taxonomy_code:
            data["taxonomyCode"] = self.taxonomy_code
        else:
            data["keywords"] = list(self.keywords)
        return data


@dataclass(frozen=True, slots=True)
class SubcategoryDescriptor:
    id: str
    name: str
    taxonomy_code: str
    category_id: str

    def to_dict(self) -> Dict[str, str]:
        return {"id": self.id, "name": self.name, "taxonomyCode": self.taxonomy_code, "categoryId": self.category_id}


# ---------- Search results ----------


@dataclass(slots=True)
class Resource:
    """Normalized snapshot of a directory entry returned by the search provider."""

    id: str
    name: str
    organization: Optional[str] = None
    description: str = ""
    address: Optional[str] = None
    zip_code: Optional[str] = None
    phone: Optional[str] = None
    website: Optional[str] = None
    hours: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    services: List[str] = field(default_factory=list)
    service_at_location_id: Optional[str] = None
    service_id: Optional[str] = None
    distance_miles: Optional[float] = None
    raw_snapshot: Optional[Dict[str, Any]] = field(default=None, repr=False, compare=False)

    def to_dict(self, include_raw: bool = False) -> Dict[str, Any]:
        data = {
            "id": self.id,
            "name": self.name,
            "organization": self.organization,
            "description": self.description,
            "address": self.address,
            "zipCode": self.zip_code,
            "phone": self.phone,
            "website": self.website,
            "hours": self.hours,
            "latitude": self.latitude,
            "longitude": self.longitude,
            "services": list(self.services),
            "serviceAtLocationId": self.service_at_location_id,
            "serviceId": self.service_id,
            "distanceMiles": self.distance_miles,
        }
        if include_raw:
            data["raw"] = self.raw_snapshot or {}
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Resource":
        return cls(
            id=str(data["id"]),
            name=str(data.get("name") or ""),
            organization=data.get("organization"),
            description=data.get("description") or "",
            address=data.get("address"),
            zip_code=data.get("zipCode"),
            phone=data.get("phone"),
            website=data.get("website"),
            hours=data.get("hours"),
            latitude=data.get("latitude"),
            longitude=data.get("longitude"),
            services=list(data.get("services") or []),
            service_at_location_id=data.get("serviceAtLocationId"),
            service_id=data.get("serviceId"),
            distance_miles=data.get("distanceMiles"),
        )


@dataclass(frozen=True, slots=True)
class ResourcePage:
    """One provider page. ``has_more`` is derived, never taken from the provider."""

    items: Tuple[Resource, ...]
    total: int
    offset: int = 0

    @property
    def has_more(self) -> bool:
        return bool(self.items) and self.offset + len(self.items) < self.total

    @property
    def next_offset(self) -> int:
        return self.offset + len(self.items)
