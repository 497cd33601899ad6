"""Application configuration."""

import os

from pydantic_settings import BaseSettings, SettingsConfigDict

_ENVIRONMENT = os.getenv("ENVIRONMENT", "local")


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    openai_api_key: str
    openai_image_model: str = "gpt-image-1"
    openai_image_size: str = "1024x1024"
    supabase_url: str
    supabase_service_key: str
    session_ttl_seconds: int = 3600
    generation_timeout_seconds: float = 120.0
    store_check_timeout_seconds: float = 5.0
    store_connect_timeout_seconds: float = 10.0
    max_concurrency: int | None = None
    environment: str = _ENVIRONMENT

    model_config = SettingsConfigDict(
        env_file=(f".env.{_ENVIRONMENT}", ".env"),
        extra="ignore",
    )
