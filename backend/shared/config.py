"""
Centralized configuration for the Polyphony backend.

All settings are loaded from environment variables (or a .env file) with
sensible defaults. Run-specific settings (agents, models, language) live in
the YAML run configuration loaded by core.config instead.
"""

from functools import lru_cache
from pathlib import Path
from typing import Literal, Optional
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = "Polyphony"
    app_version: str = "0.1.0"
    log_level: str = "INFO"

    # Session storage
    session_store: Literal["memory", "file", "supabase"] = "memory"
    session_dir: Path = Path("sessions")
    interaction_log_dir: Optional[Path] = None

    # Supabase
    supabase_url: str = ""
    supabase_service_role_key: str = ""

    # LLM Provider API Keys
    anthropic_api_key: str = ""
    openai_api_key: str = ""
    google_api_key: str = ""
    xai_api_key: str = ""
    openrouter_api_key: str = ""

    # Reasoner calls
    reasoner_timeout_seconds: Optional[float] = 120.0


@lru_cache
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Uses lru_cache to ensure settings are only loaded once.
    """
    return Settings()
