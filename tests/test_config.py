"""Tests for configuration loading."""

import pytest

from expense_tracker.config import get_settings, validate_all_settings
from expense_tracker.config.settings import AppSettings


class TestAppSettings:
    """Tests for AppSettings defaults and overrides."""

    def test_defaults(self, monkeypatch):
        monkeypatch.delenv("PAGE_SIZE", raising=False)
        settings = AppSettings()
        assert settings.page_size == 10
        assert settings.fetch_retry_attempts == 3
        assert settings.currency_symbol == "$"

    def test_environment_override(self, monkeypatch):
        monkeypatch.setenv("PAGE_SIZE", "25")
        monkeypatch.setenv("CURRENCY_SYMBOL", "€")
        settings = AppSettings()
        assert settings.page_size == 25
        assert settings.currency_symbol == "€"

    def test_rejects_out_of_range(self, monkeypatch):
        monkeypatch.setenv("PAGE_SIZE", "0")
        with pytest.raises(ValueError):
            AppSettings()


class TestValidateAllSettings:
    """Tests for the startup configuration check."""

    def test_missing_google_sheets_reported(self, monkeypatch):
        monkeypatch.delenv("GOOGLE_SHEETS_CREDENTIALS_PATH", raising=False)
        monkeypatch.delenv("GOOGLE_SHEETS_SPREADSHEET_ID", raising=False)
        get_settings.cache_clear()

        results = validate_all_settings()

        assert results["google_sheets"] is False
        assert "google_sheets_error" in results
        assert results["app"] is True

    def test_settings_are_cached(self):
        assert get_settings() is get_settings()
