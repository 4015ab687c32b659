"""Application configuration managed via environment variables."""
from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    app_name: str = "Scheduler Backend"
    debug: bool = False
    log_level: str = "INFO"
    database_url: str = "postgresql+psycopg2://scheduler@localhost:5432/scheduler"
    cors_origins: list[str] = ["*"]
    opik_enabled: bool = False
    opik_api_key: str | None = None
    opik_project: str = "scheduler-backend"

    generator_provider: str = "gemini"
    generator_timeout_seconds: float = 60.0
    # A "chunking" claim older than this is treated as abandoned; keep it above the generator timeout.
    chunk_claim_timeout_seconds: float = 180.0
    gemini_api_key: str | None = None
    gemini_base_url: str = "https://generativelanguage.googleapis.com/v1beta"
    openai_api_key: str | None = None
    openai_model: str | None = "gpt-4o"

    # Model variants per call site.
    chunk_model: str = "gemini-2.5-pro"
    scoring_model: str = "gemini-1.5-pro"
    summary_model: str = "gemini-1.5-flash"

    default_chunk_size_min: int = 60
    chunk_max_output_tokens: int = 2048
    chunk_temperature: float = 0.2
    schedule_max_output_tokens: int = 1024
    schedule_temperature: float = 0.2
    summary_temperature: float = 0.7


@lru_cache
def get_settings() -> Settings:
    """Return a cached Settings instance."""
    return Settings()


settings = get_settings()
