"""
Configuration — typed, validated settings loaded from environment/.env.

Uses pydantic-settings so applications embedding the library can tune its
logging without code changes:

  APIRESULT_LOG_LEVEL=DEBUG
  APIRESULT_LOG_RENDERER=json
  APIRESULT_LOG_CHILD_FAILURES=false

Settings are read once and cached; tests call get_settings.cache_clear()
after changing the environment.
"""

from __future__ import annotations

import logging
from functools import lru_cache
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ApiResultSettings(BaseSettings):
    """
    Library settings.

    Load order (highest priority first):
      1. Environment variables prefixed with APIRESULT_
      2. .env file in the working directory
      3. Default values
    """

    model_config = SettingsConfigDict(
        env_prefix="APIRESULT_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    log_level: str = Field(default="INFO", description="Minimum level emitted by configure_structlog")
    log_renderer: Literal["console", "json"] = Field(
        default="console",
        description="Human-readable console output or JSON lines",
    )
    log_child_failures: bool = Field(
        default=True,
        description="Log each child task failure captured by a ResultScope",
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, value: str) -> str:
        """Reject names the logging module does not know."""
        level = value.strip().upper()
        if not isinstance(logging.getLevelName(level), int):
            raise ValueError(f"Unknown log level: {value!r}")
        return level

    @property
    def log_level_number(self) -> int:
        return logging.getLevelName(self.log_level)


@lru_cache(maxsize=1)
def get_settings() -> ApiResultSettings:
    """The process-wide settings instance."""
    return ApiResultSettings()
