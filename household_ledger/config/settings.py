"""
Configuration Management for the Household Ledger

Settings come from LEDGER_, GOOGLE_SHEETS_ and LOG_ environment variables
or a local .env file.

DESIGN DECISION: One module owns every knob.
Engine behaviour that the household may want to change (exchange rate,
loan deletion policy, storage backend) is read from here and nowhere else.
"""

from decimal import Decimal
from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class LedgerSettings(BaseSettings):
    """Engine behaviour settings."""

    model_config = SettingsConfigDict(
        env_prefix="LEDGER_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    default_currency: str = Field(
        default="BRL",
        min_length=3,
        max_length=3,
        description="Currency used when a record does not carry one"
    )
    usd_rate: Decimal = Field(
        default=Decimal("0"),
        ge=0,
        description="Single USD->BRL rate for valueBRL (0 = not configured)"
    )
    upcoming_days: int = Field(
        default=30,
        ge=0,
        le=365,
        description="Window for the upcoming loan installments list"
    )
    cascade_loan_installments: bool = Field(
        default=False,
        description=(
            "Delete a loan's installments together with the loan. "
            "When False they are kept as orphaned history."
        )
    )
    storage_backend: Literal["memory", "google_sheets"] = Field(
        default="memory",
        description="Which RecordStore implementation to build"
    )


class GoogleSheetsSettings(BaseSettings):
    """Where the Sheets-backed store lives and how it authenticates."""

    model_config = SettingsConfigDict(
        env_prefix="GOOGLE_SHEETS_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    credentials_path: str = Field(
        ...,
        description="Service account key file used to open the ledger spreadsheet"
    )
    spreadsheet_id: str = Field(
        ...,
        description="Spreadsheet holding one worksheet per record type"
    )
    worksheet_prefix: str = Field(
        default="",
        description="Prefix added to every worksheet name (e.g. 'test_')"
    )

    @field_validator('credentials_path')
    @classmethod
    def validate_credentials_path(cls, v: str) -> str:
        """A missing key file only warns; deployments may mount it after startup."""
        if not Path(v).exists():
            import warnings
            warnings.warn(
                f"Service account key {v} is missing; "
                "the Sheets store cannot connect until it is present."
            )
        return v


class LogSettings(BaseSettings):
    """Local logging configuration."""

    model_config = SettingsConfigDict(
        env_prefix="LOG_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    level: str = Field(
        default="INFO",
        pattern="^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$",
    )
    json_output: bool = Field(
        default=True,
        description="Render logs as JSON (False = human-readable console)"
    )


class Settings(BaseSettings):
    """
    Entry point for ledger, storage and log settings.

    Sub-settings are built on access.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Note: sub-settings are loaded lazily so a missing Google Sheets
    # configuration does not break the in-memory setup

    @property
    def ledger(self) -> LedgerSettings:
        return LedgerSettings()

    @property
    def google_sheets(self) -> GoogleSheetsSettings:
        return GoogleSheetsSettings()

    @property
    def log(self) -> LogSettings:
        return LogSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Shared Settings instance.

    Tests and long-running processes reload through
    get_settings.cache_clear().
    """
    return Settings()


def validate_all_settings() -> dict[str, bool]:
    """
    Startup check: try to build each settings group.

    Maps group name to success, plus "<group>_error" messages for the
    groups that failed.
    """
    results = {}

    settings = get_settings()

    try:
        ledger = settings.ledger
        results["ledger"] = True
    except Exception as e:
        results["ledger"] = False
        results["ledger_error"] = str(e)
        ledger = None

    # Google Sheets only matters when it is the selected backend
    if ledger is not None and ledger.storage_backend == "google_sheets":
        try:
            _ = settings.google_sheets
            results["google_sheets"] = True
        except Exception as e:
            results["google_sheets"] = False
            results["google_sheets_error"] = str(e)

    try:
        _ = settings.log
        results["log"] = True
    except Exception as e:
        results["log"] = False
        results["log_error"] = str(e)

    return results
