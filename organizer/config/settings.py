"""
Configuration Management for the Organizer engine

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
Every tunable of the sync engine (retry ceiling, poll intervals, storage keys)
lives in one place and is validated at startup.
"""

from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class StorageSettings(BaseSettings):
    """Local durable store configuration."""

    model_config = SettingsConfigDict(
        env_prefix="ORGANIZER_STORAGE_",
        extra="ignore"
    )

    data_dir: Path = Field(
        default=Path(".organizer"),
        description="Directory holding one JSON file per storage key"
    )
    data_key: str = Field(
        default="glow-up-organizer-data",
        min_length=1,
        description="Key under which the aggregate document is stored"
    )
    queue_key: str = Field(
        default="glow-up-sync-queue",
        min_length=1,
        description="Key under which the outbound sync queue is stored"
    )
    dead_letter_key: str = Field(
        default="glow-up-sync-dead-letter",
        min_length=1,
        description="Key under which abandoned sync entries are kept"
    )
    audit_key: str = Field(
        default="glowup-audit-log",
        min_length=1,
        description="Key under which the command audit log is stored"
    )
    audit_max_entries: int = Field(
        default=200,
        ge=1,
        le=10000,
        description="Number of audit entries retained"
    )


class SyncSettings(BaseSettings):
    """Outbound queue and inbound poller tuning."""

    model_config = SettingsConfigDict(
        env_prefix="ORGANIZER_SYNC_",
        extra="ignore"
    )

    remote_key: str = Field(
        default="glow-up-organizer-data",
        min_length=1,
        description="Key of the aggregate document on the remote service"
    )
    max_retries: int = Field(
        default=3,
        ge=1,
        le=20,
        description="Delivery attempts before a queue entry is marked failed"
    )
    drain_pause_seconds: float = Field(
        default=0.5,
        ge=0.0,
        le=60.0,
        description="Pause between delivery attempts inside one drain"
    )
    poll_interval_seconds: float = Field(
        default=30.0,
        gt=0.0,
        description="Base interval between remote pulls"
    )
    hidden_poll_interval_seconds: float = Field(
        default=300.0,
        gt=0.0,
        description="Pull interval while the application is hidden"
    )
    failure_backoff_threshold: int = Field(
        default=3,
        ge=1,
        description="Consecutive pull failures before the interval backs off"
    )
    max_poll_interval_seconds: float = Field(
        default=900.0,
        gt=0.0,
        description="Upper bound for the backed-off pull interval"
    )


class RemoteSettings(BaseSettings):
    """Remote persistence service selection."""

    model_config = SettingsConfigDict(
        env_prefix="ORGANIZER_REMOTE_",
        extra="ignore"
    )

    backend: str = Field(
        default="none",
        pattern="^(none|http|sheets)$",
        description="Which remote store to use"
    )
    api_base: str = Field(
        default="",
        description="Base URL of the /api/save and /api/load endpoints"
    )
    timeout_seconds: float = Field(
        default=10.0,
        gt=0.0,
        le=120.0,
        description="HTTP timeout for remote calls"
    )

    @field_validator('api_base')
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")


class GoogleSheetsSettings(BaseSettings):
    """Google Sheets remote store configuration."""

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
    data_sheet_name: str = Field(
        default="UserData",
        description="Name of the key/value worksheet"
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
        pattern="^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$",
        description="Minimum level for structured logs"
    )


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

    # Note: These are loaded lazily to allow partial configuration

    @property
    def storage(self) -> StorageSettings:
        return StorageSettings()

    @property
    def sync(self) -> SyncSettings:
        return SyncSettings()

    @property
    def remote(self) -> RemoteSettings:
        return RemoteSettings()

    @property
    def google_sheets(self) -> GoogleSheetsSettings:
        return GoogleSheetsSettings()

    @property
    def app(self) -> AppSettings:
        return AppSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached).

    Call get_settings.cache_clear() to reload if needed.
    """
    return Settings()


def validate_all_settings() -> dict[str, bool]:
    """
    Validate all settings are properly configured.

    Returns a dict of {setting_name: is_valid}.
    Useful for startup checks.
    """
    results = {}

    settings = get_settings()

    sections = {
        "storage": lambda: settings.storage,
        "sync": lambda: settings.sync,
        "remote": lambda: settings.remote,
        "app": lambda: settings.app,
    }

    try:
        remote_backend = settings.remote.backend
    except Exception:
        remote_backend = "none"
    if remote_backend == "sheets":
        sections["google_sheets"] = lambda: settings.google_sheets

    for name, load in sections.items():
        try:
            load()
            results[name] = True
        except Exception as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    return results
