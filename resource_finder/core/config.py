"""Application configuration helpers.

Credentials come from the environment only: `DIRECTORY_API_KEY` is a
subscription key for the 211 directory and must never be hardcoded.
"""

import logging
import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "https://api.211.org/resources/v2/search"
MAX_PAGE_SIZE = 50


class ConfigError(RuntimeError):
    """Raised when configuration values cannot be parsed."""


@dataclass(frozen=True)
class Settings:
    directory_api_key: str = ""
    directory_api_url: str = DEFAULT_API_URL
    fallback_location: str = "Santa Barbara County, CA"
    postal_location_mode: str = "Near"
    search_radius_miles: int = 25
    page_size: int = 20
    geolocation_timeout: float = 10.0
    geolocation_enabled: bool = False
    geolocation_url: str = "http://ip-api.com/json"
    state_path: str = str(Path.home() / ".resource_finder" / "state.json")
    worker_port: int = 9000


def _get_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ConfigError(f"{name} must be an integer, got {raw!r}") from exc


def _get_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise ConfigError(f"{name} must be a number, got {raw!r}") from exc


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Load settings from environment variables with sensible defaults."""
    load_dotenv()

    directory_api_key = os.getenv("DIRECTORY_API_KEY", "")
    directory_api_url = (os.getenv("DIRECTORY_API_URL") or DEFAULT_API_URL).rstrip("/")
    fallback_location = os.getenv("DIRECTORY_FALLBACK_LOCATION") or Settings.fallback_location
    postal_location_mode = os.getenv("DIRECTORY_POSTAL_LOCATION_MODE") or Settings.postal_location_mode
    search_radius_miles = _get_int("SEARCH_RADIUS_MILES", Settings.search_radius_miles)
    page_size = _get_int("SEARCH_PAGE_SIZE", Settings.page_size)
    geolocation_timeout = _get_float("GEOLOCATION_TIMEOUT_SECONDS", Settings.geolocation_timeout)
    geolocation_enabled = os.getenv("GEOLOCATION_ENABLED", "false").lower() in {"1", "true", "yes"}
    geolocation_url = os.getenv("GEOLOCATION_URL") or Settings.geolocation_url
    state_path = os.path.expanduser(os.getenv("STATE_PATH") or Settings.state_path)
    worker_port = _get_int("WORKER_PORT", Settings.worker_port)

    if page_size < 1 or page_size > MAX_PAGE_SIZE:
        logger.warning("SEARCH_PAGE_SIZE=%s out of range; clamping to 1..%s", page_size, MAX_PAGE_SIZE)
        page_size = min(max(page_size, 1), MAX_PAGE_SIZE)
    if not directory_api_key:
        logger.warning("DIRECTORY_API_KEY is not configured; directory searches will be rejected.")

    return Settings(
        directory_api_key=directory_api_key,
        directory_api_url=directory_api_url,
        fallback_location=fallback_location,
        postal_location_mode=postal_location_mode,
        search_radius_miles=search_radius_miles,
        page_size=page_size,
        geolocation_timeout=geolocation_timeout,
        geolocation_enabled=geolocation_enabled,
        geolocation_url=geolocation_url,
        state_path=state_path,
        worker_port=worker_port,
    )
