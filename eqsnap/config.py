from pathlib import Path
from dotenv import load_dotenv
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field

# Load .env from repo root for local development and scripts.
ENV_PATH = Path(__file__).resolve().parents[1] / ".env"
load_dotenv(dotenv_path=ENV_PATH)

class Settings(BaseSettings):
    model_config = SettingsConfigDict(case_sensitive=True)
    alpha_vantage_key: str | None = Field(default=None, alias="ALPHA_VANTAGE_KEY")
    finnhub_api_key: str | None = Field(default=None, alias="FINNHUB_API_KEY")
    default_provider: str = Field(default="alpha-vantage", alias="DEFAULT_PROVIDER")
    benchmark_symbol: str = Field(default="SPY", alias="BENCHMARK_SYMBOL")
    http_timeout_seconds: float = Field(default=30.0, alias="HTTP_TIMEOUT_SECONDS")
    fetch_max_attempts: int = Field(default=3, alias="FETCH_MAX_ATTEMPTS")
    fetch_base_delay_seconds: float = Field(default=1.5, alias="FETCH_BASE_DELAY_SECONDS")
    finnhub_days_back: int = Field(default=400, alias="FINNHUB_DAYS_BACK")
    yahoo_history_period: str = Field(default="2y", alias="YAHOO_HISTORY_PERIOD")
    db_path: str = Field(default="./data/snapshots.db", alias="DB_PATH")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    log_error_file: str | None = Field(default=None, alias="LOG_ERROR_FILE")

settings = Settings()
