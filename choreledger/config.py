"""
Chore Ledger — Centralized configuration.

Loads all settings from .env and validates them.
This module is the foundation for every other module in the project.
"""

from __future__ import annotations

import logging
import os
import sys
from pathlib import Path

from dotenv import load_dotenv
from pydantic import BaseModel, ValidationError, field_validator

# Load .env from project root (two levels up from choreledger/config.py)
_ENV_PATH = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(_ENV_PATH)

_LOG_LEVELS = ("CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG")


class Settings(BaseModel):
    """Application settings loaded from environment variables."""

    # SQLite: jobs, assignments and the completion ledger
    DATABASE_PATH: str = "data/chores.db"
    DB_TIMEOUT_SECONDS: float = 5.0

    # Logging
    LOG_LEVEL: str = "INFO"

    # Only used by the entry point to decide what "today" is
    TIMEZONE: str = "UTC"

    @field_validator("DATABASE_PATH")
    @classmethod
    def check_database_path(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("DATABASE_PATH must not be empty")
        if v.strip() == ":memory:":
            # Every store call opens its own connection
            raise ValueError("DATABASE_PATH must be a file; ':memory:' is not supported")
        return v.strip()

    @field_validator("DB_TIMEOUT_SECONDS", mode="before")
    @classmethod
    def parse_timeout(cls, v: str | float) -> float:
        timeout = float(v)
        if timeout <= 0:
            raise ValueError("DB_TIMEOUT_SECONDS must be positive")
        return timeout

    @field_validator("LOG_LEVEL", mode="before")
    @classmethod
    def parse_log_level(cls, v: str) -> str:
        level = str(v).strip().upper()
        if level not in _LOG_LEVELS:
            raise ValueError(f"LOG_LEVEL must be one of {', '.join(_LOG_LEVELS)}")
        return level

    @property
    def log_level(self) -> int:
        return getattr(logging, self.LOG_LEVEL)


def _load_settings() -> Settings:
    """Load settings from environment, exiting on invalid values."""
    try:
        return Settings(
            DATABASE_PATH=os.getenv("DATABASE_PATH", "data/chores.db"),
            DB_TIMEOUT_SECONDS=os.getenv("DB_TIMEOUT_SECONDS", "5"),
            LOG_LEVEL=os.getenv("LOG_LEVEL", "INFO"),
            TIMEZONE=os.getenv("TIMEZONE", "UTC"),
        )
    except ValidationError as exc:
        print(f"ERROR: invalid configuration in .env: {exc}", file=sys.stderr)
        sys.exit(1)


# Singleton, imported by all other modules as:
#   from choreledger.config import settings
settings = _load_settings()
