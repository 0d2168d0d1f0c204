"""
Configuration Management for Expense Tracker

Uses pydantic-settings for type-safe configuration from environment variables.

All configuration is centralized here, one settings class per external
collaborator (object store, record store, identity, API client) plus the
application-wide settings.
"""

from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ObjectStoreSettings(BaseSettings):
    """S3-compatible object store (MinIO, R2, S3) configuration."""

    model_config = SettingsConfigDict(
        env_prefix="S3_",
        extra="ignore"
    )

    endpoint: str = Field(
        ...,
        description="Host and port of the object store, without scheme (e.g. localhost:9000)"
    )
    access_key: str = Field(
        ...,
        description="Access key ID"
    )
    secret_key: str = Field(
        ...,
        description="Secret access key"
    )
    bucket: str = Field(
        ...,
        description="Bucket receipts are uploaded to"
    )
    region: str = Field(
        default="us-east-1",
        description="Bucket region. Presigning is done locally when the region is known."
    )
    secure: bool = Field(
        default=False,
        description="Use HTTPS when talking to the endpoint"
    )

    @field_validator('endpoint')
    @classmethod
    def strip_scheme(cls, v: str) -> str:
        """The minio SDK wants host[:port], not a URL."""
        for prefix in ("http://", "https://"):
            if v.startswith(prefix):
                return v[len(prefix):].rstrip("/")
        return v.rstrip("/")


class GoogleSheetsSettings(BaseSettings):
    """Google Sheets record store configuration."""

    model_config = SettingsConfigDict(
        env_prefix="GOOGLE_SHEETS_",
        extra="ignore"
    )

    credentials_path: str = Field(
        ...,
        description="Path to Google service account credentials JSON"
    )
    spreadsheet_id: str = Field(
        ...,
        description="ID of the Google Sheets spreadsheet to use"
    )

    # Sheet names within the spreadsheet
    expenses_sheet_name: str = Field(
        default="Expenses",
        description="Name of the sheet for expense records"
    )
    audit_sheet_name: str = Field(
        default="AuditLog",
        description="Name of the sheet for audit logs"
    )

    @field_validator('credentials_path')
    @classmethod
    def validate_credentials_path(cls, v: str) -> str:
        """Warn if credentials file doesn't exist (but don't fail - might be mounted later)."""
        if not Path(v).exists():
            import warnings
            warnings.warn(
                f"Google credentials file not found at {v}. "
                "Make sure it exists before running the application."
            )
        return v


class AuthSettings(BaseSettings):
    """Identity provider configuration."""

    model_config = SettingsConfigDict(
        env_prefix="AUTH_",
        extra="ignore"
    )

    password: Optional[str] = Field(
        default=None,
        description="Shared login password. Unset or blank disables authentication."
    )
    default_actor: str = Field(
        default="local",
        description="Identity used for every caller while authentication is disabled"
    )
    session_cookie_name: str = Field(
        default="session",
        description="Name of the session cookie"
    )
    session_ttl_seconds: int = Field(
        default=7 * 24 * 3600,
        ge=60,
        description="Lifetime of a login session"
    )
    cookie_secure: bool = Field(
        default=False,
        description="Only send the session cookie over HTTPS"
    )

    @field_validator('password')
    @classmethod
    def blank_means_disabled(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and v.strip() == "":
            return None
        return v

    @property
    def enabled(self) -> bool:
        return self.password is not None


class ClientSettings(BaseSettings):
    """Settings for the asyncio API client and its cache."""

    model_config = SettingsConfigDict(
        env_prefix="EXPENSES_CLIENT_",
        extra="ignore"
    )

    base_url: str = Field(
        default="http://localhost:8000/api",
        description="Base URL of the expenses API"
    )
    timeout_seconds: float = Field(
        default=10.0,
        gt=0,
        description="Timeout for every HTTP call, API and direct uploads alike"
    )
    serialize_mutations: bool = Field(
        default=False,
        description="Run mutations against the same query key one at a time"
    )
    stale_after_seconds: float = Field(
        default=3000,
        gt=0,
        description="Refetch cached data older than this. Keep it below the API's "
                    "download_url_ttl_seconds so signed receipt URLs are replaced "
                    "before they expire."
    )


class AppSettings(BaseSettings):
    """
    Main application settings.

    Loads configuration from environment variables and .env file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Environment
    app_environment: str = Field(
        default="development",
        description="Application environment"
    )
    debug_mode: bool = Field(
        default=False,
        description="Enable debug mode"
    )
    log_level: str = Field(
        default="INFO",
        description="Root log level"
    )

    # Record store selection
    storage_backend: str = Field(
        default="memory",
        pattern="^(memory|google_sheets)$",
        description="Which record store implementation to use"
    )

    # Signed URL lifetimes
    download_url_ttl_seconds: int = Field(
        default=3600,
        ge=1,
        le=7 * 24 * 3600,
        description="Lifetime of signed receipt download URLs"
    )
    upload_url_ttl_seconds: int = Field(
        default=60,
        ge=1,
        le=3600,
        description="Lifetime of signed receipt upload URLs"
    )

    # Upload restrictions
    allowed_upload_types: str = Field(
        default="image/*,application/pdf",
        description="Comma-separated MIME types (type/* wildcards allowed) accepted for receipts"
    )

    # HTTP
    cors_origins: str = Field(
        default="http://localhost:5173",
        description="Comma-separated list of origins allowed to call the API"
    )

    @property
    def allowed_upload_types_list(self) -> list[str]:
        """Get allowed upload types as a list."""
        return [t.strip().lower() for t in self.allowed_upload_types.split(",") if t.strip()]

    @property
    def cors_origins_list(self) -> list[str]:
        """Get CORS origins as a list."""
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]


class Settings(BaseSettings):
    """
    Root settings container.

    Aggregates all sub-settings for easy access.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Sub-settings are loaded lazily so a partially configured
    # environment (e.g. no object store yet) can still start.

    @property
    def object_store(self) -> ObjectStoreSettings:
        return ObjectStoreSettings()

    @property
    def google_sheets(self) -> GoogleSheetsSettings:
        return GoogleSheetsSettings()

    @property
    def auth(self) -> AuthSettings:
        return AuthSettings()

    @property
    def client(self) -> ClientSettings:
        return ClientSettings()

    @property
    def app(self) -> AppSettings:
        return AppSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached).

    Uses LRU cache to ensure settings are only loaded once.
    Call get_settings.cache_clear() to reload if needed.
    """
    return Settings()


def validate_all_settings() -> dict[str, bool]:
    """
    Validate all settings are properly configured.

    Returns a dict of {setting_name: is_valid}, plus a
    "<name>_error" entry for every section that failed to load.
    Useful for startup checks.
    """
    results = {}

    settings = get_settings()

    for name in ("object_store", "google_sheets", "auth", "client", "app"):
        try:
            getattr(settings, name)
            results[name] = True
        except Exception as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    return results
