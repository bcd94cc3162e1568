from functools import lru_cache
from pathlib import Path
from typing import List, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment with defaults.

    Environment variable mapping follows pydantic's rules (e.g., APP_NAME, DEBUG, DATA_DIR,
    DB_FILENAME, EXCHANGE_RATE_PROVIDER, RATES_CACHE_TTL_SECONDS).
    """

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False)

    # Basic app metadata
    app_name: str = "Trip Cost Planner"
    debug: bool = True
    version: str = "0.1.0"

    # Data & persistence
    data_dir: Path = Path("data")
    db_filename: str = "app.sqlite3"
    db_path: Optional[Path] = None  # derived if not provided

    # Forecasting
    default_base_currency: str = "USD"
    forecast_default_statuses: List[str] = ["confirmed", "shortlisted"]

    # Exchange rates / caching
    # Allowed: 'static' (built-in USD anchored table), 'yahoo' (chart quote endpoint)
    exchange_rate_provider: str = "static"
    rate_quote_url: str = "https://query1.finance.yahoo.com/v8/finance/chart"
    http_timeout_seconds: float = 10.0
    http_retries: int = 2
    http_backoff_seconds: float = 0.5
    rates_cache_ttl_seconds: int = 3600  # 1 hour

    # Feature toggles
    enable_rate_override: bool = True

    def init_post_load(self) -> None:
        """Finalize derived fields and ensure directories exist."""
        if self.db_path is None:
            self.db_path = self.data_dir / self.db_filename
            self.data_dir.mkdir(parents=True, exist_ok=True)
        self.default_base_currency = self.default_base_currency.upper()
        allowed = {"static", "yahoo"}
        if self.exchange_rate_provider not in allowed:
            raise ValueError(
                f"Unsupported exchange_rate_provider '{self.exchange_rate_provider}'. Allowed: {allowed}"
            )


@lru_cache
def get_settings() -> Settings:
    settings = Settings()
    settings.init_post_load()
    return settings
