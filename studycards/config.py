"""
Centralized configuration management for studycards.
"""
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

from .constants import DEFAULT_CONNECT_TIMEOUT


def get_default_db_path() -> Path:
    """Returns the default path for the database file.

    The directory itself is created lazily by the connection handler.
    """
    return Path.home() / ".studycards" / "studycards.db"


class Settings(BaseSettings):
    """
    Defines application settings, loaded from environment variables or .env files.

    Every field can be overridden with a ``STUDYCARDS_`` prefixed variable,
    e.g. ``STUDYCARDS_DB_PATH`` or ``STUDYCARDS_CONNECT_TIMEOUT``.
    """

    model_config = SettingsConfigDict(
        env_prefix="STUDYCARDS_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # --- Storage ---
    # Path to the DuckDB file, or ":memory:" for a throwaway database.
    db_path: Path = get_default_db_path()

    # How long startup waits for the persistent backend before falling back
    # to the in-memory store.
    connect_timeout: float = DEFAULT_CONNECT_TIMEOUT

    # Seed the example dataset into an empty database on startup.
    seed_example_data: bool = True

    # --- Server ---
    host: str = "0.0.0.0"
    port: int = 8000
    log_level: str = "INFO"


def get_settings() -> Settings:
    """Builds a fresh Settings instance from the current environment."""
    return Settings()
