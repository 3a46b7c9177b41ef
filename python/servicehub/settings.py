"""Settings for servicehub.

Values come from environment variables prefixed ``SERVICEHUB_`` or a ``.env``
file. Library classes receive a Settings instance by injection (usually via
HubContext); the global accessors below exist for the CLI entry point and
tests.
"""

from typing import List, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Runtime configuration for discovery, description and channels."""

    # =========================================================================
    # INTERFACE DESCRIPTIONS
    # =========================================================================
    # Resolved relative to each service address
    descriptor_suffix: str = ".commoners"

    # =========================================================================
    # TIMEOUTS
    # =========================================================================
    http_timeout: float = Field(default=10.0, gt=0, le=600)
    channel_open_timeout: float = Field(default=10.0, gt=0, le=600)

    # =========================================================================
    # COMMAND CHANNEL
    # =========================================================================
    # Sent as soon as a channel opens
    channel_initial_commands: List[str] = Field(
        default_factory=lambda: ["platform", "version"]
    )

    # =========================================================================
    # HOST TABLE PROBES
    # =========================================================================
    probe_resource: str = "users"
    version_path: str = "version"

    # =========================================================================
    # LOGGING
    # =========================================================================
    log_level: str = "INFO"
    log_json: bool = False

    @field_validator("descriptor_suffix", "probe_resource", "version_path", mode="after")
    @classmethod
    def validate_non_empty(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("must be a non-empty path segment")
        return v.strip()

    @field_validator("log_level", mode="after")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Invalid log level: {v}")
        return level

    model_config = SettingsConfigDict(
        env_prefix="SERVICEHUB_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )


# =============================================================================
# GLOBAL SETTINGS (Lazy Initialization)
# =============================================================================

_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Get global settings instance, creating it lazily.

    Prefer dependency injection over this global getter.
    """
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def set_settings(settings_instance: Settings) -> None:
    global _settings
    _settings = settings_instance


def reset_settings() -> None:
    """Forces re-creation on next get_settings() call."""
    global _settings
    _settings = None


__all__ = ["Settings", "get_settings", "set_settings", "reset_settings"]
