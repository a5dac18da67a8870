"""Tests for environment-driven settings."""

import pytest
from pydantic import ValidationError

from autoscale_store.core.config import Settings


class TestSettings:
    """Test cases for Settings."""

    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("DATABASE_URL", "sqlite+aiosqlite://")
        monkeypatch.setenv("RESOURCE_GROUP", "rg-from-env")
        monkeypatch.setenv("API_CACHE_TTL", "120")

        settings = Settings()

        assert settings.resource_group == "rg-from-env"
        assert settings.api_cache_ttl == 120
        assert settings.is_sqlite

    def test_log_level_is_normalized(self):
        assert Settings(database_url="sqlite+aiosqlite://", log_level="debug").log_level == "DEBUG"

    def test_unknown_log_level(self):
        with pytest.raises(ValidationError):
            Settings(database_url="sqlite+aiosqlite://", log_level="chatty")

    def test_cache_ttl_must_be_positive(self):
        with pytest.raises(ValidationError):
            Settings(database_url="sqlite+aiosqlite://", api_cache_ttl=0)
