"""Centralized application configuration using Pydantic Settings (v2).

This module exposes a single, cached `settings` instance that reads from:
- Real environment variables (highest precedence)
- `.env` files at the repository root: .env, .env.local, .env.dev/.env.test/.env.prod

It also hosts `get_logger()`, the one place where studyblocks loggers get
their handler and level.
"""

from __future__ import annotations

import logging
import os
from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

EnvName = Literal["dev", "test", "prod"]
LogLevelName = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
PolicyName = Literal["auto", "manual", "suppress"]


class Settings(BaseSettings):
    """Typed application configuration loaded from env and `.env` files.

    Attributes
    ----------
    environment : EnvName
        Runtime environment flag; maps from `STUDYBLOCKS_ENV`.
    log_level : LogLevelName
        Global log level string; maps from `LOG_LEVEL`.
    google_api_key : Optional[str]
        Key for the image search lookup. Maps from `GOOGLE_API_KEY`.
    google_cse_id : Optional[str]
        Custom Search engine id for the image lookup. Maps from `GOOGLE_CSE_ID`.
    image_policy : PolicyName
        Default resolution policy for placeholder image blocks.
    rollback_failed_mutations : bool
        Re-apply the inverse local patch when a persistence call fails.
    generator_model : str
        Model alias used by the summary generator.
    """

    environment: EnvName = Field(default="dev", alias="STUDYBLOCKS_ENV")
    log_level: LogLevelName = Field(default="INFO", alias="LOG_LEVEL")
    google_api_key: str | None = Field(default=None, alias="GOOGLE_API_KEY")
    google_cse_id: str | None = Field(default=None, alias="GOOGLE_CSE_ID")
    image_policy: PolicyName = Field(default="auto", alias="STUDYBLOCKS_IMAGE_POLICY")
    rollback_failed_mutations: bool = Field(default=True, alias="STUDYBLOCKS_ROLLBACK")
    generator_model: str = Field(default="generator", alias="STUDYBLOCKS_MODEL")

    model_config = SettingsConfigDict(
        env_file=(".env", ".env.local", ".env.dev", ".env.test", ".env.prod"),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @property
    def is_dev(self) -> bool:
        """Return True if running in the development environment."""
        return self.environment == "dev"

    @property
    def is_test(self) -> bool:
        """Return True if running in the test environment."""
        return self.environment == "test"

    @property
    def has_lookup_credentials(self) -> bool:
        """Return True when both image search credentials are configured."""
        return bool(self.google_api_key) and bool(self.google_cse_id)

    def log_level_numeric(self) -> int:
        """Return the numeric logging level corresponding to `self.log_level`."""
        return getattr(logging, self.log_level, logging.INFO)


@lru_cache(maxsize=1)
def load_settings() -> Settings:
    """Create and cache a `Settings` instance.

    Tests force a rebuild via `load_settings.cache_clear()` after mutating
    `os.environ`.
    """
    os.environ.setdefault("STUDYBLOCKS_ENV", "dev")
    return Settings()


settings: Settings = load_settings()


def get_logger(name: str = "studyblocks") -> logging.Logger:
    """Return a process-global logger configured to the current log level."""
    logger = logging.getLogger(name)
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(
            logging.Formatter("%(asctime)s | %(levelname)s | %(name)s | %(message)s")
        )
        logger.addHandler(handler)
    logger.setLevel(load_settings().log_level_numeric())
    logger.propagate = False
    return logger


__all__ = ["Settings", "get_logger", "load_settings", "settings"]
