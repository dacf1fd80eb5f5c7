"""
Configuration settings for the studypath service.

Uses Pydantic Settings for environment variable management with .env file support.
"""
from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ========================================
    # Content Generation (Gemini)
    # ========================================
    gemini_api_key: str | None = Field(
        default=None,
        description="Google Generative AI (Gemini) API key",
    )
    ai_model: str = Field(
        default="gemini-2.5-flash",
        description="Model used to generate learning paths and module detail",
    )
    chat_model: str = Field(
        default="gemini-2.5-flash-lite",
        description="Model used by the sub-module chat assistant",
    )
    generation_timeout_ms: int = Field(
        default=120000,
        description="Timeout for a single generation request in milliseconds",
    )
    chat_max_output_tokens: int = Field(
        default=2048,
        description="Maximum tokens in a chat assistant reply",
    )

    # ========================================
    # Session Store
    # ========================================
    store_backend: Literal["memory", "json", "sql"] = Field(
        default="sql",
        description="Where learning sessions are persisted",
    )
    database_url: str = Field(
        default="sqlite:///data/studypath.db",
        description="SQLAlchemy connection string for the sql backend",
    )
    session_dir: Path = Field(
        default=Path.home() / ".studypath" / "sessions",
        description="Directory for the json backend",
    )

    # ========================================
    # Logging
    # ========================================
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Logging verbosity level",
    )
    log_file: str | None = Field(
        default=None,
        description="Log file path (None for stderr only)",
    )

    # ========================================
    # API Server
    # ========================================
    api_host: str = Field(
        default="127.0.0.1",
        description="API server host",
    )
    api_port: int = Field(
        default=8100,
        description="API server port",
    )

    def has_ai_configured(self) -> bool:
        """Check if a content generator can be reached."""
        return bool(self.gemini_api_key)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
