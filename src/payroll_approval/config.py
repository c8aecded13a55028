"""Configuration management for the payroll approval service."""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache

from dotenv import load_dotenv


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in ("1", "true", "yes")


@dataclass(frozen=True)
class Settings:
    """Application settings loaded from environment."""

    database_url: str
    host: str
    port: int
    debug: bool
    log_level: str
    max_transaction_retries: int
    sqlite_busy_timeout: float
    create_schema_on_startup: bool

    @classmethod
    def from_env(cls) -> Settings:
        """Load settings from environment variables."""
        load_dotenv()

        return cls(
            database_url=os.getenv(
                "DATABASE_URL",
                "sqlite+aiosqlite:///./payroll_approval.db",
            ),
            host=os.getenv("HOST", "0.0.0.0"),
            port=int(os.getenv("PORT", "8000")),
            debug=_env_bool("DEBUG", "false"),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
            max_transaction_retries=int(os.getenv("MAX_TRANSACTION_RETRIES", "3")),
            sqlite_busy_timeout=float(os.getenv("SQLITE_BUSY_TIMEOUT", "15")),
            create_schema_on_startup=_env_bool("CREATE_SCHEMA_ON_STARTUP", "true"),
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings.from_env()
