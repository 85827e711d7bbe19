"""
Meez - Configuration and settings.

All settings come from the environment (or a local .env file).
Optional integrations switch off when their credentials are absent:
no SCRAPERAPI_KEY means no fallback proxy, no Supabase credentials
means in-memory cache and similarity index.
"""

from functools import lru_cache
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Settings for the ingestion pipeline, API and CLI."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # OpenAI
    openai_api_key: str
    openai_model: str = "gpt-4.1-mini"
    embedding_model: str = "text-embedding-3-small"
    embedding_dimensions: int = 1536

    # Fallback retrieval proxy (optional)
    scraperapi_key: str | None = None

    # Supabase (optional - absent means in-memory stores)
    supabase_url: str | None = None
    supabase_service_role_key: str | None = None
    cache_table: str = "processed_recipes_cache"
    match_function: str = "match_recipes_by_embedding"

    # Timeouts (seconds) - every outbound call carries one
    fetch_timeout_seconds: float = 15.0
    fallback_timeout_seconds: float = 60.0
    llm_timeout_seconds: float = 60.0
    embedding_timeout_seconds: float = 20.0
    storage_timeout_seconds: float = 10.0

    # Prompt ceilings (characters)
    max_prompt_chars: int = 150_000
    max_rewrite_prompt_chars: int = 100_000

    # Near-duplicate detection
    similarity_threshold: float = 0.55

    # LangSmith (optional)
    langchain_tracing_v2: bool = False
    langchain_api_key: str | None = None
    langchain_project: str = "meez-ingest"

    # Application
    meez_env: Literal["development", "staging", "production"] = "development"
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"

    # MEEZ_LOG_PROMPTS=1 - log prompts to local files (dev only)
    meez_log_prompts: bool = False

    @property
    def fallback_enabled(self) -> bool:
        return bool(self.scraperapi_key)

    @property
    def storage_enabled(self) -> bool:
        return bool(self.supabase_url and self.supabase_service_role_key)

    @property
    def is_development(self) -> bool:
        return self.meez_env == "development"


@lru_cache
def get_settings() -> Settings:
    """Get cached Settings instance."""
    return Settings()


class _SettingsProxy:
    """Lazy proxy so importing meez never reads the environment."""

    _instance: Settings | None = None

    def __getattr__(self, name: str):
        if self._instance is None:
            self._instance = get_settings()
        return getattr(self._instance, name)


settings = _SettingsProxy()
