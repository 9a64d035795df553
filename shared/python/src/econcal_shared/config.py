"""
config.py — pydantic-settings Settings class.

All environment variables for the econcal ingestion engine are declared here.
Sources, loaders, and the CLI import `settings` from this module.

Usage:
    from econcal_shared.config import settings
    print(settings.fred_api_key)
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
    # Supabase (record store)
    # -------------------------------------------------------------------------
    supabase_url: str = Field(default="http://localhost:54321")
    supabase_service_key: str = Field(default="")

    # -------------------------------------------------------------------------
    # Provider credentials
    # -------------------------------------------------------------------------
    fred_api_key: str = Field(default="")
    bls_api_key: str = Field(default="")
    fmp_api_key: str = Field(default="")
    finnhub_api_key: str = Field(default="")
    trading_economics_api_key: str = Field(default="")

    # -------------------------------------------------------------------------
    # Provider endpoints
    # -------------------------------------------------------------------------
    fred_base_url: str = Field(default="https://api.stlouisfed.org/fred")
    bls_base_url: str = Field(
        default="https://api.bls.gov/publicAPI/v2/timeseries/data"
    )
    ecb_base_url: str = Field(default="https://data-api.ecb.europa.eu/service/data")
    imf_base_url: str = Field(
        default="https://dataservices.imf.org/REST/SDMX_JSON.svc"
    )
    world_bank_base_url: str = Field(default="https://api.worldbank.org/v2")
    cme_base_url: str = Field(default="https://www.cmegroup.com")
    te_calendar_url: str = Field(default="https://tradingeconomics.com/calendar")
    fmp_base_url: str = Field(default="https://financialmodelingprep.com/stable")
    finnhub_base_url: str = Field(default="https://finnhub.io/api/v1")
    trading_economics_base_url: str = Field(
        default="https://api.tradingeconomics.com"
    )
    http_timeout: float = Field(default=30.0)

    # -------------------------------------------------------------------------
    # Import defaults
    # -------------------------------------------------------------------------
    fred_import_start_date: str = Field(default="2014-01-01")
    bls_import_start_year: int = Field(default=2014)
    ecb_import_start_period: str = Field(default="2014-01")
    imf_import_start_year: int = Field(default=2014)
    world_bank_import_start_year: int = Field(default=2014)
    cme_import_months: int = Field(default=2)
    upcoming_import_days: int = Field(default=30)

    # -------------------------------------------------------------------------
    # Validation overrides
    # -------------------------------------------------------------------------
    validation_allow_missing: bool = Field(default=False)
    validation_min_value: float | None = Field(default=None)
    validation_max_value: float | None = Field(default=None)
    validation_outlier_std_devs: float | None = Field(default=None)

    # -------------------------------------------------------------------------
    # Logging
    # -------------------------------------------------------------------------
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO"
    )
    log_format: Literal["json", "console"] = Field(default="console")

    @field_validator(
        "supabase_url",
        "fred_base_url",
        "bls_base_url",
        "ecb_base_url",
        "imf_base_url",
        "world_bank_base_url",
        "cme_base_url",
        "fmp_base_url",
        "finnhub_base_url",
        "trading_economics_base_url",
        mode="before",
    )
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/") if isinstance(v, str) else v


# ---------------------------------------------------------------------------
# Module-level singleton, import this everywhere
# ---------------------------------------------------------------------------
settings = Settings()
