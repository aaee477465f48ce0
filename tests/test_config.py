import pytest

from resource_finder.core import config


def test_get_settings_reads_env(monkeypatch):
    monkeypatch.setenv("DIRECTORY_API_KEY", "abc123")
    monkeypatch.setenv("DIRECTORY_API_URL", "https://api.example.org/search/")
    monkeypatch.setenv("SEARCH_RADIUS_MILES", "10")
    monkeypatch.setenv("SEARCH_PAGE_SIZE", "30")
    monkeypatch.setenv("GEOLOCATION_TIMEOUT_SECONDS", "2.5")
    monkeypatch.setenv("GEOLOCATION_ENABLED", "yes")

    settings = config.get_settings()

    assert settings.directory_api_key == "abc123"
    assert settings.directory_api_url == "https://api.example.org/search"
    assert settings.search_radius_miles == 10
    assert settings.page_size == 30
    assert settings.geolocation_timeout == 2.5
    assert settings.geolocation_enabled is True


def test_get_settings_warns_when_missing(monkeypatch, caplog):
    monkeypatch.delenv("DIRECTORY_API_KEY", raising=False)
    monkeypatch.delenv("SEARCH_PAGE_SIZE", raising=False)
    monkeypatch.delenv("DIRECTORY_FALLBACK_LOCATION", raising=False)

    with caplog.at_level("WARNING"):
        settings = config.get_settings()

    assert "DIRECTORY_API_KEY is not configured" in " ".join(caplog.messages)
    assert settings.directory_api_key == ""
    assert settings.page_size == 20
    assert settings.fallback_location == "Santa Barbara County, CA"


def test_get_settings_clamps_page_size(monkeypatch):
    monkeypatch.setenv("SEARCH_PAGE_SIZE", "500")
    assert config.get_settings().page_size == config.MAX_PAGE_SIZE


def test_get_settings_rejects_bad_numbers(monkeypatch):
    monkeypatch.setenv("SEARCH_RADIUS_MILES", "far")
    with pytest.raises(config.ConfigError):
        config.get_settings()
