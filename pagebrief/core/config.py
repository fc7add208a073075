from __future__ import annotations

from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # MongoDB (page cache store)
    mongo_uri: str = "mongodb://localhost:27017"
    mongo_db: str = "pagebrief"
    mongo_max_pool_size: int = 10

    # Page cache
    cache_key_prefix: str = "page:"
    cache_ttl_seconds: int = 60 * 60 * 24 * 30

    # Remote browser backend
    browser_endpoint: str = "http://localhost:3000"
    browser_token: Optional[str] = None
    browser_timeout: float = 10.0
    browser_max_retries: int = 2
    navigation_timeout_ms: int = 30000

    # Language model
    openai_api_key: str = ""
    openai_base_url: Optional[str] = None
    openai_model: str = "gpt-4o-mini"
    classification_temperature: float = 0.1
    summary_temperature: float = 0.3
    summary_max_tokens: int = 200

    # Logging
    log_level: str = "INFO"


settings = Settings()
