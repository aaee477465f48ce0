"""Location resolution: device readings and zip codes into a LocationState."""

from __future__ import annotations

import json
import logging
import re
import threading
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FuturesTimeoutError
from typing import Callable, List, Optional

from resource_finder.core import zip_table
from resource_finder.core.config import Settings, get_settings
from resource_finder.core.errors import (
    InvalidZipError,
    LocationError,
    LocationPermissionError,
    LocationTimeoutError,
    ZipNotFoundError,
)
from resource_finder.core.store import KeyValueStore
from resource_finder.models import (
    Coordinate,
    CoordinatesLocation,
    LocationErrorState,
    LocationLoading,
    LocationNone,
    LocationState,
    PartialAddress,
    ZipCodeLocation,
    location_state_from_dict,
)
from resource_finder.vendors.geolocation import GeolocationProvider

logger = logging.getLogger(__name__)

ZIP_KEY = "location.zipCode"
COORDINATES_KEY = "location.coordinates"

_ZIP_INPUT_RE = re.compile(r"^\d{5}(-\d{4})?$")
_executor = ThreadPoolExecutor(max_workers=4, thread_name_prefix="geolocation")

Listener = Callable[[LocationState], None]


def resolve_zip(value: str) -> Coordinate:
    """Validate a user-entered zip and look it up. Never touches the network."""
    cleaned = (value or "").strip()
    if not _ZIP_INPUT_RE.match(cleaned):
        raise InvalidZipError(f"Invalid ZIP code {cleaned!r}: expected 5 digits")
    coordinate = zip_table.lookup(cleaned)
    if coordinate is None:
        raise ZipNotFoundError(f"ZIP code {cleaned[:5]} is not in the service area table")
    return coordinate


def reverse_enrich(latitude: float, longitude: float) -> Optional[PartialAddress]:
    entry = zip_table.nearest(Coordinate(lat=latitude, lng=longitude))
    if entry is None:
        return None
    return PartialAddress(city=entry.city, state=entry.state, country="US", zip_code=entry.zip)


class LocationResolver:
    """Owns the active LocationState for one session.

    Every user action takes a new sequence number; a device lookup that
    finishes after a newer action started is dropped. Identical states are
    never re-emitted.
    """

    def __init__(
        self,
        store: Optional[KeyValueStore] = None,
        geolocation: Optional[GeolocationProvider] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        self._store = store
        self._geolocation = geolocation
        self._settings = settings or get_settings()
        self._state: LocationState = LocationNone()
        self._sequence = 0
        self._lock = threading.Lock()
        self._listeners: List[Listener] = []

    @property
    def state(self) -> LocationState:
        return self._state

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    # ---------- Transitions ----------

    def request_current_location(self) -> LocationState:
        seq = self._next_sequence()
        self._apply(seq, LocationLoading())

        try:
            latitude, longitude = self._read_device()
            new_state: LocationState = CoordinatesLocation(
                latitude=latitude,
                longitude=longitude,
                location=reverse_enrich(latitude, longitude),
            )
        except LocationError as exc:
            logger.warning("Device location failed: %s", exc)
            new_state = LocationErrorState(message=str(exc))
        except Exception as exc:  # noqa: BLE001
            logger.exception("Unexpected device location failure: %s", exc)
            new_state = LocationErrorState(message="Failed to get current location")

        return self._apply(seq, new_state)

    def set_zip_code(self, zip_code: Optional[str]) -> LocationState:
        if not (zip_code or "").strip():
            return self.clear()

        seq = self._next_sequence()
        try:
            coordinate = resolve_zip(zip_code or "")
        except (InvalidZipError, ZipNotFoundError) as exc:
            logger.info("Rejected zip code %r: %s", zip_code, exc)
            return self._apply(seq, LocationErrorState(message=str(exc)))

        return self._apply(seq, ZipCodeLocation(zip_code=zip_code.strip()[:5], location=coordinate))

    def clear(self) -> LocationState:
        seq = self._next_sequence()
        state = self._apply(seq, LocationNone())
        if self._store is not None:
            try:
                self._store.remove(ZIP_KEY)
                self._store.remove(COORDINATES_KEY)
            except OSError as exc:
                logger.error("Failed to remove persisted location: %s", exc)
        return state

    def load(self) -> LocationState:
        """Restore the persisted location; device coordinates win over a saved zip."""
        persisted = self._read_persisted()
        if persisted is None or persisted == self._state:
            return self._state
        seq = self._next_sequence()
        return self._apply(seq, persisted, persist=False)

    # ---------- Internals ----------

    def _next_sequence(self) -> int:
        with self._lock:
            self._sequence += 1
            return self._sequence

    def _apply(self, seq: int, new_state: LocationState, persist: bool = True) -> LocationState:
        with self._lock:
            if seq != self._sequence:
                logger.info("Discarding stale location result (seq=%s, current=%s)", seq, self._sequence)
                return self._state
            if new_state == self._state:
                return self._state
            self._state = new_state

        logger.debug("Location state -> %s", new_state.kind)
        if persist:
            try:
                self._persist(new_state)
            except OSError as exc:
                logger.error("Failed to persist location state %s: %s", new_state.kind, exc)
        for listener in list(self._listeners):
            listener(new_state)
        return new_state

    def _read_device(self):
        if self._geolocation is None:
            raise LocationError("Device location is not available")
        future = _executor.submit(self._locate, self._geolocation)
        timeout = self._settings.geolocation_timeout
        try:
            latitude, longitude = future.result(timeout=timeout)
        except FuturesTimeoutError:
            future.cancel()
            raise LocationTimeoutError(f"Timed out after {timeout:g}s waiting for device location") from None
        return float(latitude), float(longitude)

    @staticmethod
    def _locate(provider: GeolocationProvider):
        if not provider.request_permission():
            raise LocationPermissionError("Location permission not granted")
        return provider.get_current_position()

    def _persist(self, state: LocationState) -> None:
        if self._store is None:
            return
        if isinstance(state, ZipCodeLocation):
            self._store.set(ZIP_KEY, state.zip_code)
            self._store.remove(COORDINATES_KEY)
        elif isinstance(state, CoordinatesLocation):
            self._store.set(COORDINATES_KEY, json.dumps(state.to_dict()))

    def _read_persisted(self) -> Optional[LocationState]:
        if self._store is None:
            return None

        raw_coordinates = self._store.get(COORDINATES_KEY)
        if raw_coordinates:
            try:
                state = location_state_from_dict(json.loads(raw_coordinates))
                if isinstance(state, CoordinatesLocation):
                    return state
            except (ValueError, KeyError, TypeError) as exc:
                logger.warning("Dropping unreadable persisted coordinates: %s", exc)
                self._store.remove(COORDINATES_KEY)

        saved_zip = self._store.get(ZIP_KEY)
        if saved_zip:
            try:
                return ZipCodeLocation(zip_code=saved_zip, location=resolve_zip(saved_zip))
            except (InvalidZipError, ZipNotFoundError) as exc:
                logger.warning("Dropping persisted zip %r: %s", saved_zip, exc)
                self._store.remove(ZIP_KEY)
        return None
