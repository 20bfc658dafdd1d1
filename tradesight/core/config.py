from __future__ import annotations

from functools import lru_cache
from typing import List, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    app_name: str = "TradeSight-API"
    app_version: str = "0.1.0"
    debug: bool = False

    # CSV list, defaults to the local dev frontend
    cors_origins: str = "http://localhost:5173"

    database_url: str = "sqlite:///./tradesight.db"

    # Generative model
    gemini_api_key: Optional[str] = None
    gemini_model: str = "gemini-1.5-flash"
    ai_temperature: float = 0.2
    ai_max_output_tokens: int = 1024

    # Retry policy for rate-limited provider calls
    ai_max_attempts: int = 3
    ai_backoff_base_ms: float = 1000.0
    ai_backoff_jitter_ms: float = 1000.0

    # Market data / search providers (a missing key disables that provider)
    http_timeout_seconds: float = 12.0
    exa_api_key: Optional[str] = None
    tradermade_api_key: Optional[str] = None
    coinmarketcap_api_key: Optional[str] = None
    newsdata_api_key: Optional[str] = None

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @property
    def cors_origin_list(self) -> List[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]


@lru_cache
def get_settings() -> Settings:
    return Settings()
