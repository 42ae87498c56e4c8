"""Configuration for the OAuth2 provider.

Uses Pydantic v2 frozen models for the component settings and
pydantic-settings for the process-level settings read from the environment.
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class TelemetryConfig(BaseModel):
    """Logging and tracing configuration."""

    model_config = ConfigDict(frozen=True)

    enabled: bool = True
    service_name: str = "oauth2-provider"
    log_level: str = "INFO"

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Normalize and validate the log level name."""
        level = v.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            msg = f"Unsupported log level: {v}"
            raise ValueError(msg)
        return level


class TokenConfig(BaseModel):
    """Token generation configuration."""

    model_config = ConfigDict(frozen=True)

    # Random bytes mixed into every identifier
    entropy_bytes: Annotated[int, Field(ge=16, le=128)] = 32


class ProviderSettings(BaseSettings):
    """Provider configuration loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="OAUTH2_PROVIDER_",
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
        frozen=True,
    )

    # Client registry
    clients_file: Path | None = None

    # Error responses
    realm: str | None = None
    send_body_in_json: bool = True
    with_auth_header: bool = False

    # Sub-configurations
    token: TokenConfig = Field(default_factory=TokenConfig)
    telemetry: TelemetryConfig = Field(default_factory=TelemetryConfig)


@lru_cache
def get_settings() -> ProviderSettings:
    """Get cached settings instance."""
    return ProviderSettings()
