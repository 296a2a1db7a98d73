from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import field_validator
from typing import Any, ClassVar
from pathlib import Path
import os


class Settings(BaseSettings):
    API_V1_STR: str = "/api/v1"

    # Price table backing store: "csv" reads PRICE_DATA_DIR, "database" reads
    # the price_tables table through SQLAlchemy.
    PRICE_TABLE_SOURCE: str = "csv"
    BASE_DIR: ClassVar[Path] = Path(__file__).resolve().parents[2]
    PRICE_DATA_DIR: str = str(BASE_DIR / "capquote" / "data")
    SQLALCHEMY_DATABASE_URL: str = f"sqlite:///{BASE_DIR / 'capquote.db'}"

    # Shared quote cache. Empty/none/disabled turns Redis off entirely.
    REDIS_URL: str = ""

    # In-process caches (seconds / entries)
    QUOTE_CACHE_TTL: int = 300
    LOOKUP_CACHE_TTL: int = 600
    QUOTE_CACHE_SIZE: int = 512
    LOOKUP_CACHE_SIZE: int = 2048

    # Table loading
    TABLE_MAX_AGE_SECONDS: int = 900
    TABLE_LOAD_TIMEOUT: float = 5.0
    TABLE_LOAD_RETRIES: int = 3
    TABLE_LOAD_BACKOFF: float = 0.2

    # Batch estimates
    BATCH_MAX_ITEMS: int = 100
    BATCH_CONCURRENCY: int = 8

    # Quote defaults
    DEFAULT_PRODUCT_TIER: str = "Tier 2"
    DEFAULT_QUANTITY: int = 48
    DELIVERY_FALLBACK_PRICE: str = "2.71"

    LOG_LEVEL: str = "INFO"

    model_config = SettingsConfigDict(extra="ignore", case_sensitive=True)

    @field_validator("PRICE_TABLE_SOURCE", mode="before")
    def normalize_source(cls, v: Any) -> Any:
        if isinstance(v, str):
            v = v.strip().lower()
            if v not in {"csv", "database"}:
                raise ValueError("PRICE_TABLE_SOURCE must be 'csv' or 'database'")
        return v

    @field_validator("BATCH_MAX_ITEMS", "BATCH_CONCURRENCY", "TABLE_LOAD_RETRIES")
    def require_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("must be at least 1")
        return v

    @field_validator("REDIS_URL", "DEFAULT_PRODUCT_TIER", mode="before")
    def strip_whitespace(cls, v: Any) -> Any:
        if isinstance(v, str):
            return v.strip()
        return v


def load_settings() -> "Settings":
    return Settings(_env_file=os.getenv("ENV_FILE", str(Path(__file__).resolve().parents[3] / ".env")))


settings = load_settings()
