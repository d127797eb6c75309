"""Runtime configuration loaded from ``PFM_*`` environment variables or ``.env``."""

from __future__ import annotations

from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

from pfm_forex.forex.currency import Currency

DEFAULT_DATA_PATH = Path.home() / "pfm" / "pfm-data"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="PFM_", env_file=".env", extra="ignore")

    data_path: Path = DEFAULT_DATA_PATH
    storage_url: str | None = None
    base_currency: Currency = Currency.USD
    use_symbol: bool = False

    open_exchange_api_key: str | None = None
    http_timeout: float = 10

    backfill_rate_limit: int = 4
    backfill_seconds_per_batch: float = 1

    log_level: str = "INFO"


__all__ = ["Settings", "DEFAULT_DATA_PATH"]
