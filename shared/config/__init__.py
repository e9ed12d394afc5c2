"""Configuration base classes shared by the router packages."""

from shared.config.settings import (
    BaseSettings,
    Environment,
    LogFormat,
    LogLevel,
)

__all__ = [
    "BaseSettings",
    "Environment",
    "LogFormat",
    "LogLevel",
]
