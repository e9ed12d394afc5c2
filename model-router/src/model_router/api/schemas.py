"""API request and response schemas.

Defines Pydantic models for API validation and documentation.
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator

from model_router.providers.models import (
    DEFAULT_TASK_TYPE,
    GenerationRequest,
    GenerationResult,
    ProviderDescriptor,
    parse_selection,
)
from shared.models import HealthStatus


class GenerationOptions(BaseModel):
    """Per-request generation options."""

    model_config = ConfigDict(extra="allow")

    max_tokens: int | None = Field(default=None, gt=0, description="Token limit override")
    temperature: float | None = Field(default=None, ge=0.0, le=2.0)
    top_p: float | None = Field(default=None, ge=0.0, le=1.0)
    skip_cache: bool = Field(default=False, description="Skip cache for this request")

    def to_request_fields(self) -> dict[str, Any]:
        """Split into GenerationRequest fields and provider parameters."""
        return {
            "max_tokens": self.max_tokens,
            "temperature": self.temperature,
            "top_p": self.top_p,
            "skip_cache": self.skip_cache,
            "parameters": dict(self.model_extra or {}),
        }


class ChatMessage(BaseModel):
    """One chat-style message."""

    role: str = Field(min_length=1, description="Speaker role, e.g. user or system")
    content: str = Field(description="Message text")


class GenerateRequestSchema(BaseModel):
    """API schema for generation requests.

    Takes either a ``prompt`` or chat-style ``messages``. Messages are
    flattened into one ``role: content`` line each and default to the
    ``conversation`` task type.
    """

    prompt: str | None = Field(default=None, min_length=1, description="Prompt text")
    messages: list[ChatMessage] | None = Field(
        default=None,
        min_length=1,
        description="Chat messages, instead of a prompt",
    )
    model: str | None = Field(
        default=None,
        description="Provider to pin, or 'auto' to let the router choose",
    )
    type: str | None = Field(default=None, description="Task type")
    options: GenerationOptions = Field(default_factory=GenerationOptions)

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "prompt": "Write a haiku about routers",
                    "model": "auto",
                    "type": "text-generation",
                    "options": {"max_tokens": 100},
                },
                {
                    "messages": [
                        {"role": "system", "content": "Answer briefly."},
                        {"role": "user", "content": "What is a router?"},
                    ],
                },
            ]
        }
    }

    @model_validator(mode="after")
    def _prompt_or_messages(self) -> "GenerateRequestSchema":
        if (self.prompt is None) == (self.messages is None):
            raise ValueError("Provide exactly one of 'prompt' or 'messages'")
        return self

    def to_request(self, caller_id: str) -> GenerationRequest:
        fields: dict[str, Any] = {
            "selection": parse_selection(self.model),
            "caller_id": caller_id,
            **self.options.to_request_fields(),
        }
        if self.messages is not None:
            if self.type:
                fields["task_type"] = self.type
            return GenerationRequest.from_messages(
                [m.model_dump() for m in self.messages],
                **fields,
            )
        return GenerationRequest(
            prompt=self.prompt,
            task_type=self.type or DEFAULT_TASK_TYPE,
            **fields,
        )


class BatchGenerateRequestSchema(BaseModel):
    """API schema for batch generation.

    The size cap is enforced by the route so an oversized batch gets a
    400 rather than a validation error.
    """

    prompts: list[str] = Field(min_length=1, description="Prompts to generate for")
    model: str | None = Field(default=None)
    type: str = Field(default=DEFAULT_TASK_TYPE)
    options: GenerationOptions = Field(default_factory=GenerationOptions)

    def to_requests(self, caller_id: str) -> list[GenerationRequest]:
        selection = parse_selection(self.model)
        fields = self.options.to_request_fields()
        return [
            GenerationRequest(
                prompt=prompt,
                task_type=self.type,
                selection=selection,
                caller_id=caller_id,
                **fields,
            )
            for prompt in self.prompts
        ]


class CharacterInteractRequestSchema(BaseModel):
    """API schema for character interactions."""

    character: str | dict[str, Any] = Field(
        description="Character id or inline persona",
    )
    message: str = Field(min_length=1, description="User message")
    context: str | dict[str, Any] | list[Any] | None = Field(
        default=None,
        description="Prior messages or facts",
    )
    model: str | None = Field(default=None)
    options: GenerationOptions = Field(default_factory=GenerationOptions)


class GenerateResponseSchema(BaseModel):
    """API schema for generation responses."""

    content: str = Field(description="Generated content")
    model: str | None = Field(default=None, description="Upstream model")
    provider: str = Field(description="Provider used")
    usage: dict[str, Any] = Field(default_factory=dict)
    latency_ms: float = Field(description="Provider latency in milliseconds")
    attempted: list[str] = Field(default_factory=list)
    cached: bool = Field(default=False, description="Whether response was cached")
    request_id: str | None = Field(default=None)
    timestamp: datetime = Field(description="Response timestamp")

    @classmethod
    def from_result(cls, result: GenerationResult) -> "GenerateResponseSchema":
        return cls(**result.model_dump(include=set(cls.model_fields)))


class CharacterInteractResponseSchema(BaseModel):
    """API schema for character replies."""

    character: str = Field(description="Character that replied")
    response: str = Field(description="Character reply")
    model: str | None = Field(default=None)
    provider: str
    usage: dict[str, Any] = Field(default_factory=dict)
    response_time_ms: float = Field(serialization_alias="responseTime")
    cached: bool = False
    timestamp: datetime


class BatchItemSchema(BaseModel):
    """One entry of a batch response."""

    index: int
    success: bool
    result: GenerateResponseSchema | None = None
    error: dict[str, Any] | None = None


class BatchGenerateResponseSchema(BaseModel):
    results: list[BatchItemSchema]
    succeeded: int
    failed: int


class ProviderHealthSchema(BaseModel):
    """Health of a single provider."""

    healthy: bool
    last_check: datetime | None = Field(default=None, serialization_alias="lastCheck")
    consecutive_failures: int = Field(default=0, serialization_alias="consecutiveFailures")
    last_error: str | None = Field(default=None, serialization_alias="lastError")


class HealthResponse(BaseModel):
    """Health check response."""

    status: HealthStatus = Field(description="Overall health status")
    version: str
    models: dict[str, ProviderHealthSchema]


class ModelInfoSchema(BaseModel):
    """Public view of a registered provider."""

    id: str
    name: str
    kind: str
    model: str | None = None
    capabilities: list[str]
    priority: int
    fallback: bool
    healthy: bool

    @classmethod
    def from_descriptor(cls, descriptor: ProviderDescriptor) -> "ModelInfoSchema":
        return cls(
            id=descriptor.name,
            name=descriptor.model or descriptor.name,
            kind=descriptor.kind.value,
            model=descriptor.model,
            capabilities=sorted(descriptor.capabilities),
            priority=descriptor.priority,
            fallback=descriptor.fallback,
            healthy=descriptor.is_healthy,
        )


class ModelListResponse(BaseModel):
    models: list[ModelInfoSchema]
