"""
Runtime configuration using Pydantic Settings.

Every option is read from a TX_-prefixed environment variable, e.g.
TX_ENABLE_LOGGING=1 turns on diagnostic logging to stderr. The input
file itself is always given on the command line.
"""

import logging

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="TX_",
        case_sensitive=False,
    )

    # --- Logging ---
    # Off by default: only warnings reach stderr, stdout carries the report.
    ENABLE_LOGGING: bool = False
    LOG_LEVEL: str = "INFO"

    # --- Processing ---
    # Reject every record for a client once a chargeback has locked it.
    FREEZE_LOCKED_ACCOUNTS: bool = False
    # Bound on parsed records waiting to be applied; 0 means unbounded.
    QUEUE_MAX_SIZE: int = Field(default=10_000, ge=0)

    @field_validator("LOG_LEVEL")
    @classmethod
    def known_log_level(cls, value: str) -> str:
        level = value.strip().upper()
        if not isinstance(logging.getLevelName(level), int):
            raise ValueError(f"unknown log level {value!r}")
        return level
