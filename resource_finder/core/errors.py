"""Failure types raised by the discovery pipeline."""

from typing import Optional


class ResourceFinderError(RuntimeError):
    """Base class for pipeline failures."""


class NetworkError(ResourceFinderError):
    """Transport-level failure talking to the directory (DNS, refused, timeout)."""


class ProviderError(ResourceFinderError):
    """The directory answered with a non-success HTTP status."""

    def __init__(self, status: int, body: str = "", message: Optional[str] = None) -> None:
        self.status = status
        self.body = body
        self.message = message or (body[:200] if body else f"HTTP {status}")
        super().__init__(f"Directory API error [{status}]: {self.message}")


class MalformedResponseError(ResourceFinderError):
    """The directory response broke the expected contract."""


class LocationError(ResourceFinderError):
    """Base class for location resolution failures."""


class LocationPermissionError(LocationError):
    """The device refused access to its location."""


class LocationTimeoutError(LocationError):
    """The device did not produce a reading in time."""


class InvalidZipError(LocationError, ValueError):
    """Input is not a 5-digit zip code."""


class ZipNotFoundError(LocationError, LookupError):
    """Well-formed zip code missing from the reference table."""
