"""In-process mock adapter.

Stands in for real model servers in tests and local demos. It never
touches the network but honours the same adapter contract, so the
dispatcher's fallback loop behaves exactly as with live providers.
"""

import asyncio
from typing import Any, Collection

import httpx

from model_router.errors import UpstreamProtocolError, UpstreamTimeoutError
from model_router.providers.base import ParsedResponse, ProviderAdapter
from model_router.providers.models import (
    GenerationRequest,
    GenerationResult,
    ProviderDescriptor,
    ProviderKind,
)


def mock_response(request: GenerationRequest) -> str:
    """Deterministic placeholder text for a request's task type."""
    prompt = request.prompt
    task = request.task_type
    if task == "character-interaction":
        return (
            f'Thanks for your message! Running in mock mode, so here is your input back: "{prompt}". '
            "A live model would answer in the character's own voice."
        )
    if task == "content-generation":
        return f'Mock content piece for: "{prompt}".'
    if task == "analysis":
        return f'Analysis of "{prompt}": mock mode, no insights generated.'
    if task == "code":
        return f"# mock code generation\n# prompt: {prompt}\ndef mock_function():\n    return None\n"
    return f'Mock response to: "{prompt}".'


class MockAdapter(ProviderAdapter):
    """Adapter that answers locally.

    Args:
        failing: Provider names whose generation calls fail.
        unhealthy: Provider names whose health probes fail.
        latency: Seconds to sleep before answering.
    """

    kind = ProviderKind.MOCK

    def __init__(
        self,
        failing: Collection[str] = (),
        unhealthy: Collection[str] = (),
        latency: float = 0.0,
    ) -> None:
        self.failing: set[str] = set(failing)
        self.unhealthy: set[str] = set(unhealthy)
        self.latency = latency
        self.calls: list[str] = []
        self.health_checks: list[str] = []

    def validate(self, descriptor: ProviderDescriptor) -> None:
        # Mock endpoints are labels only
        return None

    def build_payload(
        self,
        descriptor: ProviderDescriptor,
        request: GenerationRequest,
    ) -> dict[str, Any]:
        return {"prompt": request.prompt, "type": request.task_type}

    def parse_response(
        self,
        descriptor: ProviderDescriptor,
        data: Any,
    ) -> ParsedResponse:
        return ParsedResponse(content=data["text"], usage=dict(data.get("usage", {})))

    async def generate(
        self,
        descriptor: ProviderDescriptor,
        request: GenerationRequest,
        client: httpx.AsyncClient,
        timeout: float,
    ) -> GenerationResult:
        self.calls.append(descriptor.name)

        if self.latency:
            if self.latency > timeout:
                await asyncio.sleep(timeout)
                raise UpstreamTimeoutError(
                    message=f"Mock call exceeded {timeout}s",
                    provider=descriptor.name,
                )
            await asyncio.sleep(self.latency)

        if descriptor.name in self.failing:
            raise UpstreamProtocolError(
                message="HTTP 500: mock failure",
                provider=descriptor.name,
                status_code=500,
            )

        content = mock_response(request)
        parsed = self.parse_response(
            descriptor,
            {
                "text": content,
                "usage": {
                    "prompt_chars": len(request.prompt),
                    "completion_chars": len(content),
                    "mock": True,
                },
            },
        )
        return GenerationResult(
            content=parsed.content,
            provider=descriptor.name,
            model=descriptor.model or "mock-model",
            usage=parsed.usage,
            request_id=request.request_id,
            latency_ms=self.latency * 1000,
        )

    async def check_health(
        self,
        descriptor: ProviderDescriptor,
        client: httpx.AsyncClient,
        timeout: float,
    ) -> None:
        self.health_checks.append(descriptor.name)
        if descriptor.name in self.unhealthy:
            raise UpstreamProtocolError(
                message="HTTP 503: mock provider unhealthy",
                provider=descriptor.name,
                status_code=503,
            )
