"""Application configuration."""

import os

from pydantic_settings import BaseSettings, SettingsConfigDict

_ENVIRONMENT = os.getenv("ENVIRONMENT", "local")


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    openai_api_key: str
    openai_model: str = "gpt-5.2"
    openai_reasoning_effort: str | None = "low"
    openai_store: bool = False
    storage_backend: str = "supabase"
    supabase_url: str | None = None
    supabase_service_key: str | None = None
    storage_value_limit_bytes: int = 5_000_000
    persisted_log_limit: int = 20
    memory_log_limit: int = 100
    cache_window_hours: int = 24
    suggestion_threshold_kg: float = 2.0
    default_timezone: str = "UTC"
    food_data_url: str | None = None
    environment: str = _ENVIRONMENT

    model_config = SettingsConfigDict(
        env_file=(f".env.{_ENVIRONMENT}", ".env"),
        extra="ignore",
    )


def parse_storage_backend(raw: str) -> str:
    """Normalize the configured storage backend name."""
    cleaned = raw.strip().lower()
    if cleaned in {"memory", "in-memory", "inmemory"}:
        return "memory"
    if cleaned == "supabase":
        return "supabase"
    raise ValueError(f"Unknown storage backend: {raw}")
