"""Configuration for the model router.

Extends the shared configuration with routing, health, rate limiting and
provider settings. All settings can be overridden via environment variables.
"""

from enum import Enum
from functools import lru_cache
from pathlib import Path

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import SettingsConfigDict

from shared.config import BaseSettings


class RateLimitStrategy(str, Enum):
    """Available rate limiting algorithms."""

    FIXED = "fixed"
    SLIDING = "sliding"


class RouterSettings(BaseSettings):
    """Model router configuration settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )

    # Rate Limiting
    rate_limit_enabled: bool = Field(
        default=True,
        description="Enable rate limiting",
    )
    rate_limit_requests: int = Field(
        default=100,
        gt=0,
        description="Requests allowed per window per caller",
    )
    rate_limit_window_seconds: float = Field(
        default=60.0,
        gt=0,
        description="Rate limit window length in seconds",
    )
    rate_limit_strategy: RateLimitStrategy = Field(
        default=RateLimitStrategy.FIXED,
        description="Rate limiting algorithm: fixed or sliding",
    )

    # Health
    health_check_interval: float = Field(
        default=30.0,
        gt=0,
        description="Seconds between health probe ticks",
    )
    health_check_timeout: float = Field(
        default=5.0,
        gt=0,
        description="Timeout for a single health probe",
    )

    # Timeouts
    request_timeout: float = Field(
        default=60.0,
        description="Generation timeout in seconds",
    )
    media_request_timeout: float = Field(
        default=120.0,
        description="Generation timeout for media task types",
    )
    connect_timeout: float = Field(
        default=10.0,
        description="Connection timeout in seconds",
    )
    media_task_types: list[str] = Field(
        default_factory=lambda: ["image", "image-generation", "video", "audio"],
        description="Task types that get the media timeout",
    )

    # Selection
    strict_pinning: bool = Field(
        default=False,
        description="Fail instead of falling back when a pinned provider is unavailable",
    )
    high_capacity_tokens: int = Field(
        default=1000,
        gt=0,
        description="max_tokens threshold separating large and small providers",
    )
    task_affinity: dict[str, list[str]] = Field(
        default_factory=lambda: {
            "code": ["gemma3"],
            "analysis": ["gemma3"],
            "conversation": ["chatterbox"],
            "roleplay": ["chatterbox"],
            "character-interaction": ["chatterbox"],
        },
        description="Task type to preferred provider names",
    )

    # Batch
    batch_max_size: int = Field(
        default=10,
        gt=0,
        description="Maximum prompts per batch request",
    )

    # Caching
    cache_enabled: bool = Field(
        default=True,
        description="Enable response caching",
    )
    cache_ttl_seconds: int = Field(
        default=3600,
        description="Cache TTL in seconds",
    )

    # Provider credentials
    openrouter_api_key: SecretStr | None = Field(
        default=None,
        description="OpenRouter API key",
    )
    openrouter_url: str = Field(
        default="https://openrouter.ai/api/v1/chat/completions",
        description="OpenRouter chat completions URL",
    )
    openrouter_model: str = Field(
        default="meta-llama/llama-3.1-8b-instruct",
        description="Model requested from OpenRouter",
    )
    runpod_api_key: SecretStr | None = Field(
        default=None,
        description="RunPod API key",
    )
    runpod_endpoint_id: str | None = Field(
        default=None,
        description="RunPod serverless endpoint id",
    )
    runpod_url: str = Field(
        default="https://api.runpod.ai/v2",
        description="RunPod API base URL",
    )

    # Local inference servers
    gemma3_url: str = Field(
        default="http://gemma3:8000/v1/completions",
        description="Gemma 3 completions URL",
    )
    chatterbox_url: str = Field(
        default="http://chatterbox:8000/v1/completions",
        description="Chatterbox completions URL",
    )

    mock_mode: bool = Field(
        default=False,
        description="Serve every built-in provider from the mock adapter",
    )
    providers_file: Path | None = Field(
        default=None,
        description="JSON file with provider descriptors replacing the built-ins",
    )

    @field_validator("media_task_types")
    @classmethod
    def _lower_task_types(cls, value: list[str]) -> list[str]:
        return [v.strip().lower() for v in value if v.strip()]

    @property
    def providers_configured(self) -> list[str]:
        """Get list of remote providers with credentials."""
        providers = []
        if self.openrouter_api_key:
            providers.append("openrouter")
        if self.runpod_api_key and self.runpod_endpoint_id:
            providers.append("runpod")
        return providers


@lru_cache
def get_router_settings() -> RouterSettings:
    """Get cached router settings instance.

    Returns:
        RouterSettings instance with loaded configuration.
    """
    return RouterSettings()
