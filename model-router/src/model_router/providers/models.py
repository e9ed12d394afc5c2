"""Provider-agnostic models for routing and generation.

These models describe providers, their health, and the canonical
request/result shapes every wire adapter translates from and to.
"""

import hashlib
import json
from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Any, Literal
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, SecretStr, field_validator


AUTO = "auto"
DEFAULT_TASK_TYPE = "general"
WILDCARD_CAPABILITY = "all"


class ProviderKind(str, Enum):
    """Wire protocol spoken by a provider."""

    COMPLETIONS = "completions"
    CHAT_COMPLETIONS = "chat_completions"
    RUNPOD = "runpod"
    MOCK = "mock"


class HealthState(BaseModel):
    """Mutable liveness state embedded in a provider descriptor."""

    healthy: bool = Field(default=True, description="Whether provider is healthy")
    last_check: datetime | None = Field(
        default=None,
        description="Last health check time",
    )
    consecutive_failures: int = Field(
        default=0,
        description="Failures since the last successful check",
    )
    last_error: str | None = Field(default=None, description="Last error message")

    def record_success(self, at: datetime | None = None) -> None:
        """Mark healthy after a successful probe."""
        self.healthy = True
        self.consecutive_failures = 0
        self.last_error = None
        self.last_check = at or datetime.now(timezone.utc)

    def record_failure(self, error: str, at: datetime | None = None) -> None:
        """Mark unhealthy immediately, without a failure threshold."""
        self.healthy = False
        self.consecutive_failures += 1
        self.last_error = error
        if at is not None:
            self.last_check = at


class ProviderDescriptor(BaseModel):
    """Static description of a backend provider.

    Everything except the embedded ``health`` is immutable once built.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str = Field(min_length=1, description="Unique provider name")
    kind: ProviderKind = Field(description="Wire protocol adapter to use")
    endpoint: str = Field(description="Generation endpoint URL")
    health_endpoint: str | None = Field(
        default=None,
        description="Health check URL (derived from endpoint when unset)",
    )
    capabilities: frozenset[str] = Field(
        default_factory=frozenset,
        description="Task types this provider supports",
    )
    model: str | None = Field(default=None, description="Upstream model identifier")
    max_tokens: int = Field(default=500, gt=0, description="Default token limit")
    temperature: float = Field(default=0.7, ge=0.0, le=2.0)
    top_p: float = Field(default=1.0, ge=0.0, le=1.0)
    priority: int = Field(default=100, description="Lower is preferred on ties")
    fallback: bool = Field(
        default=False,
        description="Only used once no primary provider is eligible",
    )
    api_key: SecretStr | None = Field(default=None, description="Provider API key")
    options: dict[str, Any] = Field(
        default_factory=dict,
        description="Adapter-specific options",
    )
    health: HealthState = Field(default_factory=HealthState, exclude=True)

    @field_validator("name")
    @classmethod
    def _strip_name(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("provider name must not be blank")
        return value

    @field_validator("capabilities", mode="before")
    @classmethod
    def _normalize_capabilities(cls, value: Any) -> Any:
        if isinstance(value, str):
            value = [value]
        if value is None:
            return frozenset()
        return frozenset(str(v).strip().lower() for v in value)

    def supports(self, task_type: str) -> bool:
        """Check whether this provider declares the given task type."""
        task_type = task_type.lower()
        return task_type in self.capabilities or WILDCARD_CAPABILITY in self.capabilities

    @property
    def is_healthy(self) -> bool:
        return self.health.healthy


class Pinned(BaseModel):
    """Explicit provider choice."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["pinned"] = "pinned"
    name: str = Field(min_length=1)


class Automatic(BaseModel):
    """Let the selector choose."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["automatic"] = "automatic"


ProviderSelection = Annotated[Pinned | Automatic, Field(discriminator="kind")]


def parse_selection(value: str | None) -> Pinned | Automatic:
    """Convert a wire-level model name into a selection.

    ``None``, an empty string and the ``"auto"`` sentinel all mean automatic.
    """
    if value is None:
        return Automatic()
    value = value.strip()
    if not value or value.lower() == AUTO:
        return Automatic()
    return Pinned(name=value)


class GenerationRequest(BaseModel):
    """Canonical generation request shared by every adapter."""

    model_config = ConfigDict(extra="forbid")

    prompt: str = Field(min_length=1, description="Prompt text")
    task_type: str = Field(default=DEFAULT_TASK_TYPE, description="Declared task type")
    selection: ProviderSelection = Field(default_factory=Automatic)

    # Overrides of the provider defaults
    max_tokens: int | None = Field(default=None, gt=0)
    temperature: float | None = Field(default=None, ge=0.0, le=2.0)
    top_p: float | None = Field(default=None, ge=0.0, le=1.0)
    parameters: dict[str, Any] = Field(
        default_factory=dict,
        description="Extra provider parameters (e.g. image dimensions)",
    )

    caller_id: str = Field(default="anonymous", description="Identity for rate limiting")
    request_id: str = Field(default_factory=lambda: str(uuid4()))
    skip_cache: bool = Field(default=False)

    @field_validator("task_type")
    @classmethod
    def _normalize_task_type(cls, value: str) -> str:
        value = value.strip().lower()
        return value or DEFAULT_TASK_TYPE

    @classmethod
    def from_messages(
        cls,
        messages: list[dict[str, str]],
        **kwargs: Any,
    ) -> "GenerationRequest":
        """Build a conversation request from chat-style messages.

        Args:
            messages: Items with ``role`` and ``content`` keys.
            **kwargs: Any other request field.

        Returns:
            GenerationRequest with one ``role: content`` line per message.
        """
        prompt = "\n".join(f"{m['role']}: {m['content']}" for m in messages)
        kwargs.setdefault("task_type", "conversation")
        return cls(prompt=prompt, **kwargs)

    @property
    def estimated_tokens(self) -> int:
        """Rough prompt size, four characters per token."""
        return max(1, len(self.prompt) // 4)

    def cache_key(self) -> str:
        """Stable key for response caching."""
        payload = {
            "prompt": self.prompt,
            "task_type": self.task_type,
            "selection": self.selection.model_dump(),
            "max_tokens": self.max_tokens,
            "temperature": self.temperature,
            "top_p": self.top_p,
            "parameters": self.parameters,
        }
        raw = json.dumps(payload, sort_keys=True, default=str)
        return "generation:" + hashlib.sha256(raw.encode("utf-8")).hexdigest()


class GenerationResult(BaseModel):
    """Normalized provider response."""

    model_config = ConfigDict(extra="ignore")

    content: str = Field(description="Generated content")
    provider: str = Field(description="Provider that produced the content")
    model: str | None = Field(default=None, description="Upstream model, if reported")
    usage: dict[str, Any] = Field(
        default_factory=dict,
        description="Provider usage/cost metadata, passed through",
    )
    request_id: str | None = Field(default=None)
    latency_ms: float = Field(default=0.0)
    attempted: list[str] = Field(
        default_factory=list,
        description="Providers tried, in order, including the successful one",
    )
    cached: bool = Field(default=False)
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
