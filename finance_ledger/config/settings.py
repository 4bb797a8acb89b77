"""
Configuration Management for the Finance Ledger

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here. Engine passes take
plain arguments (today, grace period, currency); only the orchestrator and
the storage backends read settings.
"""

from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from finance_ledger.models.record import Currency


class LedgerSettings(BaseSettings):
    """Engine behaviour: defaults, grace periods, bounds and store keys."""

    model_config = SettingsConfigDict(
        env_prefix="LEDGER_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    default_currency: Currency = Field(
        default=Currency.INR,
        description="Currency used when a record's currency is missing or unknown"
    )
    overdue_rule_days: int = Field(
        default=0,
        ge=0,
        le=365,
        description="Grace period in days after the due date before a record is overdue"
    )
    audit_max_entries: int = Field(
        default=500,
        ge=200,
        le=800,
        description="Audit log keeps only this many most recent entries"
    )
    recurrence_max_catch_up: int = Field(
        default=120,
        ge=1,
        le=1000,
        description="Most instances a single source may spawn in one pass"
    )

    # Store keys
    records_key: str = Field(default="finance_ledger.records.v1")
    budgets_key: str = Field(default="finance_ledger.budgets.v1")
    audit_key: str = Field(default="finance_ledger.audit.v1")
    settings_key: str = Field(
        default="finance_ledger.settings.v1",
        description="Opaque console settings carried through JSON backups"
    )


class JsonFileStoreSettings(BaseSettings):
    """Local JSON document store configuration."""

    model_config = SettingsConfigDict(
        env_prefix="LEDGER_STORE_",
        extra="ignore"
    )

    path: Path = Field(
        default=Path("ledger_store.json"),
        description="File holding every store key as one JSON object"
    )


class GoogleSheetsSettings(BaseSettings):
    """Google Sheets key-value store configuration."""

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
    store_sheet_name: str = Field(
        default="LedgerStore",
        description="Worksheet holding one row per store key"
    )

    @field_validator('credentials_path')
    @classmethod
    def validate_credentials_path(cls, v: str) -> str:
        """Warn if credentials file doesn't exist (but don't fail - might be mounted later)."""
        if not Path(v).exists():
            import warnings
            warnings.warn(
                f"Google credentials file not found at {v}. "
                "Make sure it exists before connecting the store."
            )
        return v


class Settings(BaseSettings):
    """
    Root settings container.

    Sub-settings are loaded lazily so a missing Google Sheets config does
    not block a local or in-memory setup.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    @property
    def ledger(self) -> LedgerSettings:
        return LedgerSettings()

    @property
    def json_store(self) -> JsonFileStoreSettings:
        return JsonFileStoreSettings()

    @property
    def google_sheets(self) -> GoogleSheetsSettings:
        return GoogleSheetsSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached).

    Call get_settings.cache_clear() to reload if needed.
    """
    return Settings()


def validate_all_settings() -> dict[str, bool | str]:
    """
    Validate all settings are properly configured.

    Returns a dict of {setting_name: is_valid}, plus `<name>_error`
    entries for the ones that failed. Useful for startup checks.
    """
    results: dict[str, bool | str] = {}

    settings = get_settings()

    for name in ("ledger", "json_store", "google_sheets"):
        try:
            getattr(settings, name)
            results[name] = True
        except Exception as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    return results
