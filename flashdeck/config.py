"""
Centralized configuration management for the flashdeck application.
"""
from pathlib import Path
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict

from .constants import DEFAULT_STORAGE_KEY

# --- Path Configuration ---


def get_default_db_path() -> Path:
    """Returns the default path for the database file."""
    return Path.home() / ".flashdeck" / "flashdeck.db"


class Settings(BaseSettings):
    """
    Defines application settings, loaded from FLASHDECK_* environment
    variables or a .env file.
    """

    model_config = SettingsConfigDict(
        env_prefix="FLASHDECK_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # --- Storage ---
    # Overridden by FLASHDECK_DB_PATH.
    db_path: Path = get_default_db_path()
    storage_key: str = DEFAULT_STORAGE_KEY

    # --- Content generation ---
    gemini_api_key: Optional[str] = None
    gemini_model: str = "gemini-1.5-flash"
    request_timeout: float = 15.0
    ai_card_count: int = 7
    trivia_amount: int = 10
    geo_sample_size: int = 10


def get_settings() -> Settings:
    """Build a fresh Settings instance from the current environment."""
    return Settings()
