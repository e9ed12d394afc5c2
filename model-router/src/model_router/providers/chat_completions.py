"""OpenAI-compatible chat completion adapter.

Covers hosted gateways such as OpenRouter that accept the
``/chat/completions`` message format.
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


CHAT_SUFFIX = "/chat/completions"


class ChatCompletionsAdapter(ProviderAdapter):
    """Adapter for ``/chat/completions`` APIs."""

    kind = ProviderKind.CHAT_COMPLETIONS
    requires_api_key = True

    def health_url(self, descriptor: ProviderDescriptor) -> str:
        """Probe the model listing next to the chat endpoint."""
        if descriptor.health_endpoint:
            return descriptor.health_endpoint
        endpoint = descriptor.endpoint.rstrip("/")
        if endpoint.endswith(CHAT_SUFFIX):
            return endpoint[: -len(CHAT_SUFFIX)] + "/models"
        return endpoint + "/models"

    def build_headers(self, descriptor: ProviderDescriptor) -> dict[str, str]:
        headers = super().build_headers(descriptor)
        referer = descriptor.options.get("referer")
        if referer:
            headers["HTTP-Referer"] = referer
        title = descriptor.options.get("title")
        if title:
            headers["X-Title"] = title
        return headers

    def build_payload(
        self,
        descriptor: ProviderDescriptor,
        request: GenerationRequest,
    ) -> dict[str, Any]:
        params = resolve_parameters(descriptor, request)
        messages: list[dict[str, str]] = []
        system = request.parameters.get("system")
        if system:
            messages.append({"role": "system", "content": system})
        messages.append({"role": "user", "content": request.prompt})

        payload: dict[str, Any] = {
            "messages": messages,
            "max_tokens": params.max_tokens,
            "temperature": params.temperature,
            "top_p": params.top_p,
        }
        if descriptor.model:
            payload["model"] = descriptor.model
        return payload

    def parse_response(
        self,
        descriptor: ProviderDescriptor,
        data: Any,
    ) -> ParsedResponse:
        choice = data["choices"][0]
        content = choice["message"]["content"]
        if content is None:
            raise ValueError("empty message content")
        return ParsedResponse(
            content=content,
            usage=dict(data.get("usage") or {}),
            model=data.get("model"),
        )
