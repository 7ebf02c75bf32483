"""Unit tests for application settings."""

from datetime import timedelta

import pytest
from pydantic import ValidationError

from shared.config import (
    EvictionPolicy,
    Environment,
    LogFormat,
    Settings,
    get_settings,
)


class TestSettingsDefaults:
    """Test default configuration values."""

    def test_cache_defaults(self, monkeypatch) -> None:
        """Test cache defaults."""
        for name in ("CACHE_DEFAULT_TTL_SECONDS", "CACHE_MAX_SIZE", "CACHE_EVICTION_POLICY"):
            monkeypatch.delenv(name, raising=False)

        settings = Settings()

        assert settings.cache.default_ttl == timedelta(minutes=10)
        assert settings.cache.cleanup_period == timedelta(minutes=5)
        assert settings.cache.max_size == 0
        assert settings.cache.eviction_policy == EvictionPolicy.LRU

    def test_reports_and_catalogue_defaults(self) -> None:
        """Test report and catalogue defaults."""
        settings = Settings()

        assert settings.reports.max_concurrency == 8
        assert settings.catalogue.cache_ttl_seconds == 900
        assert settings.catalogue.retries == 3
        assert settings.costs.currency == "GBP"

    def test_environment_from_conftest(self) -> None:
        """Test the environment set for the test run is picked up."""
        settings = Settings()

        assert settings.environment == Environment.DEVELOPMENT
        assert settings.log_format == LogFormat.TEXT
        assert settings.is_development
        assert not settings.is_production


class TestSettingsFromEnvironment:
    """Test environment variable overrides."""

    def test_nested_cache_settings(self, monkeypatch) -> None:
        """Test prefixed variables reach nested settings."""
        monkeypatch.setenv("CACHE_MAX_SIZE", "50")
        monkeypatch.setenv("CACHE_EVICTION_POLICY", "LFU")
        monkeypatch.setenv("CACHE_DEFAULT_TTL_SECONDS", "120")

        settings = Settings()

        assert settings.cache.max_size == 50
        assert settings.cache.eviction_policy == EvictionPolicy.LFU
        assert settings.cache.default_ttl == timedelta(minutes=2)

    def test_negative_max_size_rejected(self, monkeypatch) -> None:
        """Test a negative cache size is rejected."""
        monkeypatch.setenv("CACHE_MAX_SIZE", "-1")

        with pytest.raises(ValidationError):
            Settings()

    def test_invalid_port_rejected(self, monkeypatch) -> None:
        """Test an out of range port is rejected."""
        monkeypatch.setenv("PORT", "70000")

        with pytest.raises(ValidationError):
            Settings()

    def test_production_environment(self, monkeypatch) -> None:
        """Test production environment flags."""
        monkeypatch.setenv("ENV", "production")

        settings = Settings()

        assert settings.is_production


class TestGetSettings:
    def test_settings_are_cached(self) -> None:
        """Test get_settings returns one instance."""
        get_settings.cache_clear()

        assert get_settings() is get_settings()
