import sys
from pathlib import Path

import pytest

# Ensure the `resource_finder` package is importable when running pytest from the repo root.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from resource_finder.core import config  # noqa: E402


@pytest.fixture(autouse=True)
def clear_settings_cache():
    config.get_settings.cache_clear()
    yield
    config.get_settings.cache_clear()


@pytest.fixture
def settings(tmp_path):
    return config.Settings(
        directory_api_key="test-key",
        directory_api_url="https://api.example.org/search",
        state_path=str(tmp_path / "state.json"),
        geolocation_timeout=0.5,
    )
