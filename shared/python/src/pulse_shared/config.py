"""
config.py — pydantic-settings Settings class.

All environment variables for the Pulse pipeline are declared here.
The pipeline package imports `settings` from this module.

Usage:
    from pulse_shared.config import settings
    print(settings.pulse_database)
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _find_dotenv() -> Path | None:
    """Walk up from CWD to find the nearest .env file."""
    current = Path.cwd()
    for parent in [current, *current.parents]:
        candidate = parent / ".env"
        if candidate.is_file():
            return candidate
    return None


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=_find_dotenv() or ".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # -------------------------------------------------------------------------
    # Datastore
    # -------------------------------------------------------------------------
    pulse_database: str = Field(default="./data/pulse.duckdb")

    # -------------------------------------------------------------------------
    # Data sources
    # -------------------------------------------------------------------------
    zillow_base_url: str = Field(
        default="https://files.zillowstatic.com/research/public_csvs"
    )
    census_api_url: str = Field(default="https://api.census.gov/data")
    census_api_key: str = Field(default="")
    # Comma-separated vintage years, most recent first. Empty = derive from today.
    census_vintages: str = Field(default="")
    redfin_tracker_url: str = Field(
        default=(
            "https://redfin-public-data.s3.us-west-2.amazonaws.com/"
            "redfin_market_tracker/zip_code_market_tracker.tsv000.gz"
        )
    )
    http_timeout_seconds: float = Field(default=120.0)

    # -------------------------------------------------------------------------
    # Region allow-list (defaults to the compiled Austin MSA set)
    # -------------------------------------------------------------------------
    pulse_region_allowlist: str = Field(default="")
    pulse_region_allowlist_file: str = Field(default="")
    # Comma list of Austin MSA county names, e.g. "Travis,Hays"
    pulse_region_counties: str = Field(default="")

    # -------------------------------------------------------------------------
    # Loading
    # -------------------------------------------------------------------------
    upsert_batch_size: int = Field(default=200, gt=0)
    upsert_progress_every: int = Field(default=2000, gt=0)
    redfin_progress_every: int = Field(default=1_000_000, gt=0)

    # -------------------------------------------------------------------------
    # Metric assumptions
    # -------------------------------------------------------------------------
    mortgage_rate: float = Field(default=0.0689, ge=0)
    mortgage_term_months: int = Field(default=360, gt=0)
    down_payment_pct: float = Field(default=0.20, ge=0, lt=1)
    rental_expense_ratio: float = Field(default=0.60, ge=0, le=1)
    affordability_ratio: float = Field(default=0.28, gt=0)

    # -------------------------------------------------------------------------
    # Logging
    # -------------------------------------------------------------------------
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO"
    )
    log_format: Literal["json", "console"] = Field(default="console")

    # -------------------------------------------------------------------------
    # Derived / computed
    # -------------------------------------------------------------------------
    @property
    def census_vintage_list(self) -> list[int]:
        return [int(v) for v in self.census_vintages.split(",") if v.strip()]

    @field_validator("zillow_base_url", "census_api_url", mode="before")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/") if isinstance(v, str) else v


# ---------------------------------------------------------------------------
# Module-level singleton; import this everywhere
# ---------------------------------------------------------------------------
settings = Settings()
