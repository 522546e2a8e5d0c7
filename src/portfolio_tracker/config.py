"""Application configuration loaded from environment variables via pydantic-settings."""

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Portfolio tracker configuration.

    All fields are loaded from environment variables prefixed with ``PORTFOLIO_``.

    Example::

        export PORTFOLIO_WORKBOOK_PATH="uploads/Custom_Portfolio.xlsx"
        export PORTFOLIO_REFRESH_ROUNDS=4
        export PORTFOLIO_CACHE_TTL_SECONDS=30
    """

    model_config = SettingsConfigDict(
        env_prefix="PORTFOLIO_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    workbook_path: str = Field(
        default="portfolio.xlsx",
        description="Path to the .xlsx/.xls portfolio workbook loaded by the CLI",
    )
    refresh_rounds: int = Field(
        default=1,
        ge=0,
        description="Number of refresh rounds the CLI runs; 0 keeps polling until interrupted",
    )
    cache_ttl_seconds: float = Field(
        default=15.0,
        gt=0,
        description="How long a fetched quote is served from cache",
    )
    request_delay_seconds: float = Field(
        default=0.2,
        ge=0,
        description="Pause between two consecutive market-data requests",
    )
    refresh_interval_seconds: float = Field(
        default=15.0,
        gt=0,
        description="Period of the background refresh loop",
    )
    yahoo_suffix: str = Field(
        default=".NS",
        description="Suffix appended to exchange symbols for Yahoo Finance lookups",
    )
    bse_suffix: str = Field(
        default=".BO",
        description="Suffix appended to numeric BSE scrip codes for Yahoo Finance lookups",
    )
    google_exchange: str = Field(
        default="NSE",
        description="Exchange code used in Google Finance quote URLs",
    )
    http_timeout_seconds: float = Field(
        default=10.0,
        gt=0,
        description="Timeout for the Google Finance HTTP client",
    )
    synthetic_price_min: float = Field(
        default=500.0,
        gt=0,
        description="Lower bound of simulated prices used when Yahoo Finance is unavailable",
    )
    synthetic_price_max: float = Field(
        default=2500.0,
        gt=0,
        description="Upper bound of simulated prices used when Yahoo Finance is unavailable",
    )
    log_level: str = Field(
        default="INFO",
        description="Minimum level of the stderr log sink",
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return a cached singleton Settings instance."""
    return Settings()
