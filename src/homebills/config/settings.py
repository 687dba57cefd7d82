"""Configuration settings for the bill scheduling engine."""

from datetime import time
from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Flat settings read from HOMEBILLS_* environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="HOMEBILLS_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Storage
    database_path: str = Field(
        default="homebills.db", description="SQLite database file"
    )

    # Scheduling
    daily_run_time: time = Field(
        default=time(9, 0), description="Local wall-clock time of the daily run"
    )
    missing_document_window_days: int = Field(
        default=30,
        ge=1,
        description="Look-back window for paid bills lacking a document",
    )

    # Profiles
    default_profile_id: int = Field(
        default=1, description="Profile used when a caller does not supply one"
    )

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO", description="Logging level"
    )
    log_format: Literal["json", "console"] = Field(
        default="console", description="Log output format"
    )


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
