"""
HomeSync — Centralized configuration.

Loads all settings from .env and validates them.
Core engine modules never import this; hosts pass values in explicitly.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from dotenv import load_dotenv
from pydantic import BaseModel, field_validator

# Load .env from project root (two levels up from src/config.py)
_ENV_PATH = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(_ENV_PATH)


class Settings(BaseModel):
    """Application settings loaded from environment variables."""

    # Telegram (only needed by the bot host)
    TELEGRAM_BOT_TOKEN: str = ""

    # Security
    ALLOWED_USER_IDS: list[int] = []

    # People seeded into an empty household: "Mom,Dad,Sam:child"
    HOUSEHOLD_MEMBERS: list[tuple[str, bool]] = []

    # Tick loop
    TICK_INTERVAL_SECONDS: float = 1.0

    # Dedupe ledger: days to keep date-scoped keys (0 = keep forever)
    LEDGER_RETENTION_DAYS: int = 2

    # SQLite snapshot of household state
    DATABASE_PATH: str = "data/homesync.db"
    PERSIST_LEDGER: bool = True

    LOG_LEVEL: str = "INFO"

    @field_validator("ALLOWED_USER_IDS", mode="before")
    @classmethod
    def parse_user_ids(cls, v: str | list[int]) -> list[int]:
        if isinstance(v, list):
            return v
        if isinstance(v, str) and v.strip():
            return [int(uid.strip()) for uid in v.split(",") if uid.strip()]
        return []

    @field_validator("HOUSEHOLD_MEMBERS", mode="before")
    @classmethod
    def parse_members(cls, v: str | list) -> list:
        if isinstance(v, list):
            return v
        members = []
        for raw in (v or "").split(","):
            name, _, role = raw.strip().partition(":")
            if name:
                members.append((name.strip(), role.strip().lower() != "child"))
        return members

    @field_validator("TICK_INTERVAL_SECONDS")
    @classmethod
    def positive_interval(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("TICK_INTERVAL_SECONDS must be positive")
        return v

    @field_validator("LEDGER_RETENTION_DAYS")
    @classmethod
    def non_negative_retention(cls, v: int) -> int:
        if v < 0:
            raise ValueError("LEDGER_RETENTION_DAYS must be >= 0")
        return v

    @field_validator("LOG_LEVEL", mode="before")
    @classmethod
    def known_level(cls, v: str) -> str:
        level = str(v).strip().upper()
        if level not in logging.getLevelNamesMapping():
            raise ValueError(f"Unknown LOG_LEVEL {v!r}")
        return level


def _load_settings() -> Settings:
    """Load settings from environment."""
    return Settings(
        TELEGRAM_BOT_TOKEN=os.getenv("TELEGRAM_BOT_TOKEN", ""),
        ALLOWED_USER_IDS=os.getenv("ALLOWED_USER_IDS", ""),
        HOUSEHOLD_MEMBERS=os.getenv("HOUSEHOLD_MEMBERS", ""),
        TICK_INTERVAL_SECONDS=os.getenv("TICK_INTERVAL_SECONDS", "1.0"),
        LEDGER_RETENTION_DAYS=os.getenv("LEDGER_RETENTION_DAYS", "2"),
        DATABASE_PATH=os.getenv("DATABASE_PATH", "data/homesync.db"),
        PERSIST_LEDGER=os.getenv("PERSIST_LEDGER", "true"),
        LOG_LEVEL=os.getenv("LOG_LEVEL", "INFO"),
    )


# Singleton — imported by host modules as:
#   from src.config import settings
settings = _load_settings()
