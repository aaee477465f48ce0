"""Device geolocation providers."""

import logging
from typing import Any, Dict, Optional, Protocol, Tuple

import requests

from resource_finder.core.errors import LocationError

logger = logging.getLogger(__name__)
_SESSION = requests.Session()


class GeolocationProvider(Protocol):
    def request_permission(self) -> bool: ...

    def get_current_position(self) -> Tuple[float, float]: ...


class FixedGeolocationProvider:
    """Returns a pinned reading. Used by the CLI's --lat/--lng flags and in tests."""

    def __init__(self, latitude: float, longitude: float, granted: bool = True) -> None:
        self.latitude = latitude
        self.longitude = longitude
        self.granted = granted

    def request_permission(self) -> bool:
        return self.granted

    def get_current_position(self) -> Tuple[float, float]:
        return self.latitude, self.longitude


class IpGeolocationProvider:
    """Approximates the device position from its public IP address.

    Permission is a configuration decision here: the lookup sends the caller's
    IP to a third party, so it only runs when explicitly enabled.
    """

    def __init__(self, url: str, enabled: bool, timeout: float = 10.0) -> None:
        self.url = url
        self.enabled = enabled
        self.timeout = timeout

    def request_permission(self) -> bool:
        return self.enabled

    def get_current_position(self) -> Tuple[float, float]:
        try:
            response = _SESSION.get(self.url, timeout=self.timeout)
            response.raise_for_status()
            payload: Dict[str, Any] = response.json()
        except (requests.RequestException, ValueError) as exc:
            logger.warning("IP geolocation lookup failed: %s", exc)
            raise LocationError(f"Unable to determine current location: {exc}") from exc
        if not isinstance(payload, dict):
            raise LocationError("Geolocation service returned an unexpected payload")

        lat = _coerce(payload.get("lat", payload.get("latitude")))
        lng = _coerce(payload.get("lon", payload.get("longitude")))
        if lat is None or lng is None:
            logger.error("IP geolocation returned no coordinates: keys=%s", list(payload.keys())[:10])
            raise LocationError("Geolocation service returned no coordinates")
        return lat, lng


def _coerce(value: Any) -> Optional[float]:
    try:
        if value is None:
            return None
        return float(value)
    except (TypeError, ValueError):
        return None
