"""Tests for environment-driven settings."""

import pytest
from pydantic import ValidationError

from expense_tracker.config import (
    AppSettings,
    ClientSettings,
    ObjectStoreSettings,
    get_settings,
    validate_all_settings,
)


S3_VARS = ("S3_ENDPOINT", "S3_ACCESS_KEY", "S3_SECRET_KEY", "S3_BUCKET")


@pytest.fixture(autouse=True)
def fresh_settings():
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


class TestAppSettings:
    """Tests for AppSettings."""

    def test_defaults(self):
        """Test the documented URL lifetimes and upload types."""
        settings = AppSettings(_env_file=None)
        assert settings.download_url_ttl_seconds == 3600
        assert settings.upload_url_ttl_seconds == 60
        assert settings.allowed_upload_types_list == ["image/*", "application/pdf"]
        assert settings.storage_backend == "memory"

    def test_lists_from_environment(self, monkeypatch):
        """Test comma-separated values."""
        monkeypatch.setenv("ALLOWED_UPLOAD_TYPES", " Image/PNG , ,application/pdf")
        monkeypatch.setenv("CORS_ORIGINS", "https://a.test, https://b.test")
        settings = AppSettings(_env_file=None)
        assert settings.allowed_upload_types_list == ["image/png", "application/pdf"]
        assert settings.cors_origins_list == ["https://a.test", "https://b.test"]

    def test_unknown_backend_rejected(self):
        """Test storage backend validation."""
        with pytest.raises(ValidationError):
            AppSettings(_env_file=None, storage_backend="postgres")


class TestClientSettings:
    """Tests for ClientSettings."""

    def test_prefixed_environment(self, monkeypatch):
        """Test the EXPENSES_CLIENT_ prefix."""
        monkeypatch.setenv("EXPENSES_CLIENT_BASE_URL", "https://api.test/api")
        monkeypatch.setenv("EXPENSES_CLIENT_SERIALIZE_MUTATIONS", "true")
        settings = ClientSettings()
        assert settings.base_url == "https://api.test/api"
        assert settings.serialize_mutations

    def test_cache_window_below_download_url_lifetime(self):
        """Test that cached signed URLs are refreshed before they expire."""
        assert ClientSettings().stale_after_seconds < AppSettings(_env_file=None).download_url_ttl_seconds

    def test_timeout_must_be_positive(self):
        """Test timeout validation."""
        with pytest.raises(ValidationError):
            ClientSettings(timeout_seconds=0)


class TestValidateAll:
    """Tests for validate_all_settings."""

    def test_missing_object_store_reported(self, monkeypatch):
        """Test that one broken section does not hide the others."""
        for name in S3_VARS:
            monkeypatch.delenv(name, raising=False)

        results = validate_all_settings()

        assert results["object_store"] is False
        assert "object_store_error" in results
        assert results["auth"] is True
        assert results["client"] is True

    def test_configured_object_store(self, monkeypatch):
        """Test a complete S3_ environment."""
        monkeypatch.setenv("S3_ENDPOINT", "https://minio.test:9000/")
        monkeypatch.setenv("S3_ACCESS_KEY", "key")
        monkeypatch.setenv("S3_SECRET_KEY", "secret")
        monkeypatch.setenv("S3_BUCKET", "receipts")

        assert validate_all_settings()["object_store"] is True
        assert ObjectStoreSettings().endpoint == "minio.test:9000"
