"""
Configuration management using pydantic-settings.

Loads configuration from FF_* environment variables and .env files.
Settings only provide defaults; explicit constructor arguments always win.
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_CACHE_DIR = Path(".ff-cache")
DEFAULT_NAMESPACE = "default"
DEFAULT_WRITE_ATTEMPTS = 3


def validate_namespace(value: str) -> str:
    """Check that a namespace is usable as a single directory name.

    Raises:
        ValueError: If the namespace is empty or would escape the cache root.
    """
    if not value or not value.strip():
        raise ValueError("namespace must be non-empty")
    if value in (".", "..") or "/" in value or "\\" in value:
        raise ValueError(f"namespace must be a single path segment, got {value!r}")
    return value


class Settings(BaseSettings):
    """ff settings loaded from environment variables.

    Optional:
        FF_CACHE_DIR: Storage root for the persistent backend
        FF_NAMESPACE: Default partition under the storage root
        FF_LOG_LEVEL: Logging level for the ff logger
        FF_LOG_FILE: JSON-lines log file (console only when unset)
        FF_WRITE_ATTEMPTS: Attempts for one persistent write before giving up
    """

    model_config = SettingsConfigDict(
        env_prefix="FF_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    CACHE_DIR: Path = Field(default=DEFAULT_CACHE_DIR, description="Cache directory")
    NAMESPACE: str = Field(default=DEFAULT_NAMESPACE, description="Cache namespace")

    LOG_LEVEL: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="WARNING", description="Logging level"
    )
    LOG_FILE: Path | None = Field(default=None, description="JSON log file")

    WRITE_ATTEMPTS: int = Field(
        default=DEFAULT_WRITE_ATTEMPTS, ge=1, le=10, description="Attempts per persistent write"
    )

    @property
    def cache_dir(self) -> Path:
        """Get cache directory (lowercase alias)."""
        return self.CACHE_DIR

    @property
    def namespace(self) -> str:
        """Get namespace (lowercase alias)."""
        return self.NAMESPACE

    @property
    def storage_dir(self) -> Path:
        """Effective directory of the default persistent partition."""
        return self.CACHE_DIR / self.NAMESPACE

    @field_validator("LOG_LEVEL", mode="before")
    @classmethod
    def normalize_log_level(cls, v: object) -> object:
        """Accept log levels in any case (FF_LOG_LEVEL=debug)."""
        if isinstance(v, str):
            return v.strip().upper()
        return v

    @field_validator("NAMESPACE")
    @classmethod
    def validate_namespace_segment(cls, v: str) -> str:
        """Validate that NAMESPACE is a single path segment."""
        return validate_namespace(v)

    def display(self) -> dict[str, str | int | None]:
        """Return settings as a flat mapping for display."""
        return {
            "CACHE_DIR": str(self.CACHE_DIR),
            "NAMESPACE": self.NAMESPACE,
            "LOG_LEVEL": self.LOG_LEVEL,
            "LOG_FILE": str(self.LOG_FILE) if self.LOG_FILE else None,
            "WRITE_ATTEMPTS": self.WRITE_ATTEMPTS,
        }


@lru_cache
def get_settings() -> Settings:
    """Get cached settings singleton.

    Returns:
        Settings instance loaded from environment.

    Raises:
        ValidationError: If a setting is invalid.
    """
    return Settings()


def clear_settings_cache() -> None:
    """Clear the settings cache (useful for testing)."""
    get_settings.cache_clear()
