"""Static zip-code coordinate table and great-circle distance helpers."""

from __future__ import annotations

import json
import logging
import math
import re
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Dict, Optional

from resource_finder.models import Coordinate

logger = logging.getLogger(__name__)

_DATA_FILE = Path(__file__).resolve().parent.parent.joinpath("data", "zip_codes.json")
_NON_DIGITS = re.compile(r"\D")

EARTH_RADIUS = {"mi": 3959.0, "km": 6371.0}


@dataclass(frozen=True, slots=True)
class ZipEntry:
    zip: str
    lat: float
    lng: float
    city: Optional[str] = None
    state: Optional[str] = None

    @property
    def coordinate(self) -> Coordinate:
        return Coordinate(lat=self.lat, lng=self.lng)


@lru_cache(maxsize=1)
def load_table() -> Dict[str, ZipEntry]:
    """Load the bundled reference table once. The returned mapping must not be mutated."""
    with _DATA_FILE.open("r", encoding="utf-8") as fh:
        raw = json.load(fh)

    table: Dict[str, ZipEntry] = {}
    for zip_code, entry in raw.items():
        table[zip_code] = ZipEntry(
            zip=zip_code,
            lat=float(entry["lat"]),
            lng=float(entry["lng"]),
            city=entry.get("city"),
            state=entry.get("state"),
        )
    logger.debug("Loaded %d zip codes from %s", len(table), _DATA_FILE.name)
    return table


def normalize_zip(value: Optional[str]) -> str:
    """Strip non-digits and keep the first five characters ("93101-1234" -> "93101")."""
    if not value:
        return ""
    return _NON_DIGITS.sub("", str(value))[:5]


def lookup_entry(zip_code: Optional[str]) -> Optional[ZipEntry]:
    return load_table().get(normalize_zip(zip_code))


def lookup(zip_code: Optional[str]) -> Optional[Coordinate]:
    entry = lookup_entry(zip_code)
    return entry.coordinate if entry else None


def distance(a: Coordinate, b: Coordinate, unit: str = "mi") -> float:
    """Haversine distance between two coordinates, rounded to 2 decimals."""
    try:
        radius = EARTH_RADIUS[unit]
    except KeyError:
        raise ValueError(f"Unsupported distance unit: {unit!r}") from None

    lat1, lat2 = math.radians(a.lat), math.radians(b.lat)
    d_lat = lat2 - lat1
    d_lng = math.radians(b.lng - a.lng)

    h = math.sin(d_lat / 2) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin(d_lng / 2) ** 2
    c = 2 * math.atan2(math.sqrt(h), math.sqrt(1 - h))
    return round(radius * c, 2)


def distance_between_zips(zip_a: str, zip_b: str, unit: str = "mi") -> Optional[float]:
    a = lookup(zip_a)
    b = lookup(zip_b)
    if a is None or b is None:
        return None
    return distance(a, b, unit)


def nearest(point: Coordinate, max_miles: float = 25.0) -> Optional[ZipEntry]:
    """Closest table entry within ``max_miles`` of ``point``."""
    best: Optional[ZipEntry] = None
    best_distance = math.inf
    for entry in load_table().values():
        d = distance(point, entry.coordinate)
        if d < best_distance:
            best, best_distance = entry, d
    if best is None or best_distance > max_miles:
        return None
    return best
