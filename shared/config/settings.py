"""Base configuration using Pydantic Settings.

Settings are read from environment variables (case-insensitive) and an
optional ``.env`` file. Each service subclasses ``BaseSettings`` with its
own fields.
"""

from enum import Enum

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings as PydanticBaseSettings
from pydantic_settings import SettingsConfigDict


class Environment(str, Enum):
    """Deployment environment."""

    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"
    TESTING = "testing"


class LogLevel(str, Enum):
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class LogFormat(str, Enum):
    """Log output format."""

    JSON = "json"
    TEXT = "text"


class BaseSettings(PydanticBaseSettings):
    """Settings common to every service: identity, logging, server, Redis."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )

    app_name: str = Field(default="model-router", description="Service name")
    environment: Environment = Field(
        default=Environment.DEVELOPMENT,
        description="Deployment environment",
    )
    debug: bool = Field(default=False, description="Enable debug mode and reload")

    # Logging
    log_level: LogLevel = Field(default=LogLevel.INFO, description="Logging level")
    log_format: LogFormat = Field(
        default=LogFormat.JSON,
        description="JSON lines for aggregation, text for local runs",
    )

    # HTTP server
    host: str = Field(default="0.0.0.0", description="Bind address")
    port: int = Field(default=8000, ge=1, le=65535, description="Bind port")
    cors_origins: list[str] = Field(
        default_factory=lambda: ["*"],
        description="Origins allowed by CORS",
    )

    # Shared response cache; in-process memory when unset
    redis_url: str | None = Field(default=None, description="Redis connection URL")

    @model_validator(mode="after")
    def _debug_logging(self) -> "BaseSettings":
        """Debug mode implies debug logging."""
        if self.debug and self.log_level != LogLevel.DEBUG:
            object.__setattr__(self, "log_level", LogLevel.DEBUG)
        return self

    @property
    def is_production(self) -> bool:
        return self.environment == Environment.PRODUCTION
