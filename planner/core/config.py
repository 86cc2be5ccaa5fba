"""
Application configuration using Pydantic Settings.

Centralizes all configuration with environment variable support.
"""

from functools import lru_cache
from typing import List

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings with environment variable support."""

    # Database
    database_url: str = "sqlite+aiosqlite:///./data/planner.db"

    # Session tokens issued by the identity provider
    session_secret: str = "dev-session-secret"
    session_max_age_seconds: int = 7 * 24 * 3600

    # HTTP
    cors_origins: str = "http://localhost:3000,http://localhost:5173"
    api_base_url: str = "http://localhost:8000"
    remote_timeout: float = 10.0

    # Blob storage for custom banner images
    storage_dir: str = "./data/uploads"
    storage_public_url: str = "http://localhost:8000/uploads"
    max_image_bytes: int = 6_291_456

    # Cache staleness windows (seconds)
    tasks_stale_seconds: float = 30.0
    notes_stale_seconds: float = 30.0
    settings_stale_seconds: float = 60.0

    # Debounce delays (seconds)
    text_debounce_seconds: float = 0.5
    layout_debounce_seconds: float = 0.3

    # Layout
    default_column_width: int = 130

    # Environment
    environment: str = "development"
    debug: bool = False
    log_level: str = "INFO"
    log_to_file: bool = True

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"  # Ignore extra env vars

    def cors_origin_list(self) -> List[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
