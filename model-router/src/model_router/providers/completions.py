"""OpenAI-style text completion adapter.

Used for local inference servers (vLLM and compatibles) exposing
``POST /v1/completions``.
"""

from typing import Any

from model_router.providers.base import (
    ParsedResponse,
    ProviderAdapter,
    resolve_parameters,
)
from model_router.providers.models import (
    GenerationRequest,
    ProviderDescriptor,
    ProviderKind,
)


class CompletionsAdapter(ProviderAdapter):
    """Adapter for ``/v1/completions`` servers."""

    kind = ProviderKind.COMPLETIONS

    def build_payload(
        self,
        descriptor: ProviderDescriptor,
        request: GenerationRequest,
    ) -> dict[str, Any]:
        params = resolve_parameters(descriptor, request)
        payload: dict[str, Any] = {
            "prompt": request.prompt,
            "max_tokens": params.max_tokens,
            "temperature": params.temperature,
            "top_p": params.top_p,
        }
        if descriptor.model:
            payload["model"] = descriptor.model
        if "stop" in request.parameters:
            payload["stop"] = request.parameters["stop"]
        return payload

    def parse_response(
        self,
        descriptor: ProviderDescriptor,
        data: Any,
    ) -> ParsedResponse:
        choice = data["choices"][0]
        return ParsedResponse(
            content=choice["text"],
            usage=dict(data.get("usage") or {}),
            model=data.get("model"),
        )
