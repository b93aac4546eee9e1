"""
Application configuration using Pydantic Settings.

Values are read from environment variables (or a local .env file).
"""

from functools import lru_cache
from typing import List, Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # ===========================================
    # Environment
    # ===========================================
    ENVIRONMENT: Literal["local", "test"] = "local"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # ===========================================
    # Database
    # ===========================================
    DATABASE_URL: str = "sqlite+aiosqlite:///./scheduler.db"

    # ===========================================
    # Scheduling defaults
    # ===========================================
    # Number of days a generation run looks ahead when no end date is given
    DEFAULT_HORIZON_DAYS: int = 30

    # Working hours used for users without stored preferences
    DEFAULT_WORK_START: str = "09:00"
    DEFAULT_WORK_END: str = "17:00"
    DEFAULT_WORK_DAYS: List[int] = Field(default=[0, 1, 2, 3, 4])  # Monday..Friday

    # Holiday calendar applied when the user has none configured ("" = none)
    DEFAULT_HOLIDAY_CALENDAR: str = ""

    # Smallest piece produced when a unit is split during placement
    MIN_SPLIT_MINUTES: int = Field(default=15, ge=1)

    # Long-task splitting and spacing for users without stored preferences
    DEFAULT_AUTO_SPLIT_LONG_TASKS: bool = False
    DEFAULT_MAX_TASK_MINUTES: int = Field(default=180, ge=15)
    DEFAULT_WORK_BUFFER_MINUTES: int = Field(default=0, ge=0)


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Using lru_cache ensures settings are loaded only once.
    """
    return Settings()
