"""Application configuration using pydantic-settings."""

from pathlib import Path
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


# Find .env file: check backend dir first, then project root
_BACKEND_DIR = Path(__file__).parent.parent
_PROJECT_ROOT = _BACKEND_DIR.parent
_ENV_FILE = _BACKEND_DIR / ".env" if (_BACKEND_DIR / ".env").exists() else _PROJECT_ROOT / ".env"


class Settings(BaseSettings):
    """Settings for the thread engine and its HTTP surface.

    Values come from environment variables (prefixed ``CARETHREAD_``) or
    the .env file. The engine receives a Settings instance explicitly, so
    tests build their own instead of patching the environment.
    """

    model_config = SettingsConfigDict(
        env_file=str(_ENV_FILE),
        env_file_encoding="utf-8",
        env_prefix="CARETHREAD_",
        extra="ignore",
    )

    # Document store
    store_backend: Literal["memory", "sql"] = "memory"
    database_url: str = "sqlite+aiosqlite:///./carethread.db"

    # Thread rules
    max_members: int = 50
    max_message_length: int = 4000
    tombstone_text: str = "Message deleted"

    # Application
    log_level: str = "INFO"
    debug: bool = False
    cors_origins: str = "http://localhost:3000"


settings = Settings()
