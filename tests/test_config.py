"""Tests for configuration settings."""

from datetime import timedelta

import pytest
from pydantic import ValidationError

from coda_tree_export.config import (
    CategoryQuota,
    ExportConfig,
    NestedExportSettings,
    RateLimitConfig,
    Settings,
    get_settings,
)
from coda_tree_export.schemas import OutputFormat


class TestSettings:
    """Tests for Settings class."""

    def test_settings_defaults(self):
        settings = Settings(_env_file=None)

        assert settings.coda_api_token == ""
        assert settings.coda_base_url == "https://coda.io/apis/v1"
        assert settings.log_level == "INFO"
        assert settings.is_configured is False

    def test_settings_from_env(self, monkeypatch):
        monkeypatch.setenv("CODA_API_TOKEN", "secret-token")
        monkeypatch.setenv("LOG_LEVEL", "DEBUG")

        settings = Settings(_env_file=None)

        assert settings.coda_api_token == "secret-token"
        assert settings.log_level == "DEBUG"
        assert settings.is_configured is True

    def test_whitespace_token_is_not_configured(self, monkeypatch):
        monkeypatch.setenv("CODA_API_TOKEN", "   ")

        assert Settings(_env_file=None).is_configured is False

    def test_nested_env_override(self, monkeypatch):
        """Nested models are configurable with the __ delimiter."""
        monkeypatch.setenv("EXPORT__POLL_INTERVAL_MS", "500")
        monkeypatch.setenv("NESTED__INCLUDE_NESTED", "true")
        monkeypatch.setenv("NESTED__DEPTH", "3")

        settings = Settings(_env_file=None)

        assert settings.export.poll_interval == 0.5
        assert settings.nested.include_nested is True
        assert settings.nested.depth == 3

    def test_settings_log_level_validation(self, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "LOUD")

        with pytest.raises(ValueError):
            Settings(_env_file=None)

    def test_get_settings_cached(self):
        assert get_settings() is get_settings()


class TestRateLimitConfig:
    """Tests for per-category quotas."""

    def test_default_quotas(self):
        config = RateLimitConfig()

        assert (config.read.max_concurrent, config.read.reservoir) == (5, 90)
        assert (config.write.max_concurrent, config.write.reservoir) == (2, 9)
        assert (config.write_content.max_concurrent, config.write_content.reservoir) == (1, 4)
        assert config.write_content.refresh_interval == 10.0
        assert (config.list_docs.max_concurrent, config.list_docs.reservoir) == (1, 3)
        assert (config.analytics.max_concurrent, config.analytics.reservoir) == (5, 90)

    def test_quota_unit_conversion(self):
        quota = CategoryQuota(
            max_concurrent=1,
            min_time_ms=250,
            reservoir=2,
            reservoir_refresh_amount=2,
            reservoir_refresh_interval_ms=6000,
        )

        assert quota.min_time == 0.25
        assert quota.refresh_interval == 6.0

    def test_quota_rejects_zero_concurrency(self):
        with pytest.raises(ValidationError):
            CategoryQuota(
                max_concurrent=0,
                reservoir=1,
                reservoir_refresh_amount=1,
                reservoir_refresh_interval_ms=1000,
            )


class TestExportConfig:
    """Tests for export timing configuration."""

    def test_defaults(self):
        config = ExportConfig()

        assert config.output_format == OutputFormat.MARKDOWN
        assert config.poll_interval == 2.0
        assert config.max_poll_attempts == 60
        assert config.settle_delay == 3.0
        assert config.max_retries == 3
        assert config.retry_base_delay == 1.0
        assert config.job_cache_ttl == timedelta(minutes=10)
        assert config.content_freshness == timedelta(minutes=5)


class TestNestedExportSettings:
    """Tests for nested export settings."""

    def test_defaults(self):
        settings = NestedExportSettings()

        assert settings.include_nested is False
        assert settings.depth == 1

    @pytest.mark.parametrize("depth", [0, 5, 10, "unlimited"])
    def test_valid_depths(self, depth):
        assert NestedExportSettings(depth=depth).depth == depth

    @pytest.mark.parametrize("depth", [-1, 11, "deep"])
    def test_invalid_depths(self, depth):
        with pytest.raises(ValidationError):
            NestedExportSettings(depth=depth)

    def test_effective_depth_without_nesting(self):
        """Only the root is exported unless nesting is enabled."""
        assert NestedExportSettings(include_nested=False, depth=4).effective_depth == 0

    def test_effective_depth_with_nesting(self):
        settings = NestedExportSettings(include_nested=True, depth="unlimited")

        assert settings.effective_depth == "unlimited"
