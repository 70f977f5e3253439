"""Tutera Configuration Management.

Uses Pydantic Settings for type-safe configuration with environment variable support.
"""
from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class CrestronSettings(BaseSettings):
    """Crestron Home processor connection settings."""

    model_config = SettingsConfigDict(env_prefix="CRESTRON_")

    url: str = "https://192.168.1.20"
    auth_token: str | None = None
    timeout: float = 10.0
    verify_ssl: bool = False

    @field_validator("url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        """Normalize the processor URL."""
        return v.rstrip("/")


class PollSettings(BaseSettings):
    """Reconciliation polling cadence.

    The interval stretches as the time since the last command grows.
    """

    model_config = SettingsConfigDict(env_prefix="POLL_")

    enabled: bool = True

    # Interval while commands are being issued
    active_interval_sec: float = Field(default=3.0, gt=0)

    # Idle tiers: (seconds since last command, interval)
    idle_after_sec: float = 60.0
    idle_interval_sec: float = Field(default=10.0, gt=0)
    away_after_sec: float = 300.0
    away_interval_sec: float = Field(default=60.0, gt=0)
    dormant_after_sec: float = 600.0
    dormant_interval_sec: float = Field(default=1800.0, gt=0)

    def interval_for_idle(self, idle_seconds: float) -> float:
        """Pick the poll interval for the given time since the last command."""
        if idle_seconds >= self.dormant_after_sec:
            return self.dormant_interval_sec
        if idle_seconds >= self.away_after_sec:
            return self.away_interval_sec
        if idle_seconds >= self.idle_after_sec:
            return self.idle_interval_sec
        return self.active_interval_sec


class HistorySettings(BaseSettings):
    """Command history settings."""

    model_config = SettingsConfigDict(env_prefix="HISTORY_")

    max_commands: int = Field(default=50, ge=1)


class ExecutionSettings(BaseSettings):
    """Command execution settings."""

    model_config = SettingsConfigDict(env_prefix="EXECUTION_")

    # Append "N device(s) did not respond." when setters fail
    report_failures: bool = False


class Settings(BaseSettings):
    """Main application settings."""

    model_config = SettingsConfigDict(
        env_prefix="TUTERA_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Environment
    env: Literal["development", "staging", "production"] = "development"
    debug: bool = False

    # API Server
    host: str = "0.0.0.0"
    port: int = 8000

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"

    # Nested settings
    crestron: CrestronSettings = Field(default_factory=CrestronSettings)
    poll: PollSettings = Field(default_factory=PollSettings)
    history: HistorySettings = Field(default_factory=HistorySettings)
    execution: ExecutionSettings = Field(default_factory=ExecutionSettings)


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance.

    Uses lru_cache to ensure settings are loaded once and reused.
    """
    return Settings()
