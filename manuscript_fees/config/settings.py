"""
Settings for Manuscript Fees

Read from environment variables (and a .env file) with pydantic-settings.

DESIGN DECISION: One settings module for the whole package.
The backend choice, the data file location and the Google Sheets
credentials are all looked up here, so a misconfiguration shows up as a
validation error at the first access instead of deep inside a store.
"""

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class GoogleSheetsSettings(BaseSettings):
    """Where the google_sheets backend keeps its tables."""

    model_config = SettingsConfigDict(
        env_prefix="GOOGLE_SHEETS_",
        extra="ignore"
    )

    credentials_path: str = Field(
        ...,
        description="Service account key file (JSON)"
    )
    spreadsheet_id: str = Field(
        ...,
        description="Spreadsheet holding one worksheet per table"
    )

    # One worksheet per table
    authors_sheet_name: str = Field(default="Authors")
    editors_sheet_name: str = Field(default="Editors")
    magazines_sheet_name: str = Field(default="Magazines")
    issues_sheet_name: str = Field(default="Issues")
    works_sheet_name: str = Field(default="Works")
    audit_sheet_name: str = Field(
        default="AuditLog",
        description="Append-only audit events"
    )

    @field_validator('credentials_path')
    @classmethod
    def validate_credentials_path(cls, v: str) -> str:
        """A missing key file is only a warning; it may be mounted after startup."""
        if not Path(v).exists():
            import warnings
            warnings.warn(f"Service account key file {v} does not exist yet.")
        return v


class AppSettings(BaseSettings):
    """Backend selection, data file and validation switches."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Level of the local structured log"
    )

    # Storage
    storage_backend: Literal["memory", "json", "google_sheets"] = Field(
        default="json",
        description="Which storage backend to use"
    )
    data_file_path: str = Field(
        default="manuscript-fee-data.json",
        description="Path of the local JSON data file (json backend)"
    )

    # Validation
    validate_page_ranges: bool = Field(
        default=True,
        description="Warn when start/end pages disagree with the page counts"
    )

    @property
    def data_file(self) -> Path:
        return Path(self.data_file_path)


class Settings(BaseSettings):
    """
    Entry point to every settings group.

    The groups are built on access, so the json and memory backends run
    without any Google Sheets variables set.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    @property
    def google_sheets(self) -> GoogleSheetsSettings:
        return GoogleSheetsSettings()

    @property
    def app(self) -> AppSettings:
        return AppSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Shared Settings instance.

    Tests that change the environment call get_settings.cache_clear().
    """
    return Settings()


def validate_all_settings() -> dict[str, bool]:
    """
    Check that the configured backend can start.

    Returns {group: ok}, plus "<group>_error" entries with the reason for
    each failing group. Google Sheets is only checked when it is the
    selected backend.
    """
    results = {}

    settings = get_settings()

    try:
        app = settings.app
        results["app"] = True
    except Exception as e:
        results["app"] = False
        results["app_error"] = str(e)
        return results

    if app.storage_backend == "google_sheets":
        try:
            settings.google_sheets
            results["google_sheets"] = True
        except Exception as e:
            results["google_sheets"] = False
            results["google_sheets_error"] = str(e)

    return results
