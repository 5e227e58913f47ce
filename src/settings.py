"""Centralized settings for the lot ledger.

Uses pydantic-settings to load from environment variables (prefixed LOTLEDGER_)
with defaults matching the two-bucket holding-period tax model.
"""

from functools import lru_cache

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Lot ledger settings loaded from environment variables."""

    # --- Database ---
    database_url: str = "sqlite:///lot_ledger.db"
    database_echo: bool = False

    # --- Ledger ---
    account_id: str = "default"
    reject_future_dates: bool = False

    # --- Tax model ---
    short_term_rate: float = 0.20
    long_term_rate: float = 0.10
    long_term_exemption: float = 100_000.0
    long_term_threshold_days: int = 365
    financial_year_start_month: int = 4  # April

    # --- Audit ---
    audit_epsilon: float = 1e-4

    # --- Logging ---
    log_level: str = "INFO"
    log_format: str = "json"
    slow_threshold_ms: float = 1000.0

    model_config = {
        "env_prefix": "LOTLEDGER_",
        "env_file": ".env",
        "extra": "ignore",
    }


@lru_cache
def get_settings() -> Settings:
    """Get cached settings singleton."""
    return Settings()
