"""Abstract base class for provider wire adapters.

An adapter knows how one kind of provider speaks HTTP: how to shape the
canonical request into its payload, how to read its response, and how to
probe its health. The dispatcher looks adapters up by ``ProviderKind``.
"""

import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

import httpx
from pydantic import ValidationError

from model_router.errors import (
    ConfigurationError,
    UpstreamError,
    UpstreamProtocolError,
    UpstreamTimeoutError,
)
from model_router.providers.models import (
    GenerationRequest,
    GenerationResult,
    ProviderDescriptor,
    ProviderKind,
)


@dataclass(frozen=True)
class ParsedResponse:
    """Adapter-neutral pieces of a provider response."""

    content: str
    usage: dict[str, Any]
    model: str | None = None


@dataclass(frozen=True)
class SamplingParameters:
    """Generation parameters after applying request overrides."""

    max_tokens: int
    temperature: float
    top_p: float


def resolve_parameters(
    descriptor: ProviderDescriptor,
    request: GenerationRequest,
) -> SamplingParameters:
    """Merge request overrides over the provider defaults."""
    return SamplingParameters(
        max_tokens=request.max_tokens or descriptor.max_tokens,
        temperature=(
            request.temperature
            if request.temperature is not None
            else descriptor.temperature
        ),
        top_p=request.top_p if request.top_p is not None else descriptor.top_p,
    )


class ProviderAdapter(ABC):
    """Translates between the canonical request/result and one wire format."""

    kind: ProviderKind

    requires_api_key: bool = False

    def validate(self, descriptor: ProviderDescriptor) -> None:
        """Reject descriptors this adapter cannot serve.

        Args:
            descriptor: Descriptor about to be registered.

        Raises:
            ConfigurationError: If the descriptor is unusable.
        """
        if not descriptor.endpoint.startswith(("http://", "https://")):
            raise ConfigurationError(
                f"Provider '{descriptor.name}' has a non-HTTP endpoint: "
                f"{descriptor.endpoint}"
            )
        if self.requires_api_key and (
            descriptor.api_key is None or not descriptor.api_key.get_secret_value()
        ):
            raise ConfigurationError(
                f"Provider '{descriptor.name}' ({self.kind.value}) requires an API key"
            )

    def health_url(self, descriptor: ProviderDescriptor) -> str:
        """URL probed by the health monitor.

        Defaults to ``/health`` at the root of the endpoint's host.
        """
        if descriptor.health_endpoint:
            return descriptor.health_endpoint
        url = httpx.URL(descriptor.endpoint)
        return f"{url.scheme}://{url.netloc.decode('ascii')}/health"

    def build_url(
        self,
        descriptor: ProviderDescriptor,
        request: GenerationRequest,
    ) -> str:
        return descriptor.endpoint

    def build_headers(self, descriptor: ProviderDescriptor) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if descriptor.api_key is not None:
            headers["Authorization"] = f"Bearer {descriptor.api_key.get_secret_value()}"
        return headers

    @abstractmethod
    def build_payload(
        self,
        descriptor: ProviderDescriptor,
        request: GenerationRequest,
    ) -> dict[str, Any]:
        """Shape the canonical request into this provider's JSON body."""
        ...

    @abstractmethod
    def parse_response(
        self,
        descriptor: ProviderDescriptor,
        data: Any,
    ) -> ParsedResponse:
        """Extract content and usage from a decoded response body.

        May raise ``AttributeError``/``KeyError``/``IndexError``/``TypeError``/``ValueError``
        on unexpected shapes; ``generate`` converts those into
        ``UpstreamProtocolError``.
        """
        ...

    async def generate(
        self,
        descriptor: ProviderDescriptor,
        request: GenerationRequest,
        client: httpx.AsyncClient,
        timeout: float,
    ) -> GenerationResult:
        """Perform one generation call.

        Args:
            descriptor: Target provider.
            request: Canonical request.
            client: Shared HTTP client.
            timeout: Per-call timeout in seconds.

        Returns:
            Normalized GenerationResult.

        Raises:
            UpstreamError: On any transport or protocol failure.
        """
        start_time = time.perf_counter()
        url = self.build_url(descriptor, request)
        payload = self.build_payload(descriptor, request)

        response = await self._send(
            descriptor,
            client.post(
                url,
                json=payload,
                headers=self.build_headers(descriptor),
                timeout=timeout,
            ),
        )

        if not response.is_success:
            self._handle_error(descriptor, response)

        try:
            data = response.json()
        except ValueError as e:
            raise UpstreamProtocolError(
                message="Response body is not valid JSON",
                provider=descriptor.name,
                status_code=response.status_code,
                original_error=e,
            )

        try:
            parsed = self.parse_response(descriptor, data)
            return GenerationResult(
                content=parsed.content,
                provider=descriptor.name,
                model=parsed.model or descriptor.model,
                usage=parsed.usage,
                request_id=request.request_id,
                latency_ms=(time.perf_counter() - start_time) * 1000,
            )
        except (AttributeError, KeyError, IndexError, TypeError, ValueError, ValidationError) as e:
            raise UpstreamProtocolError(
                message=f"Unexpected response shape: {e!r}",
                provider=descriptor.name,
                status_code=response.status_code,
                original_error=e,
            )

    async def check_health(
        self,
        descriptor: ProviderDescriptor,
        client: httpx.AsyncClient,
        timeout: float,
    ) -> None:
        """Probe the provider's health endpoint.

        Raises:
            UpstreamError: If the probe fails or returns a non-2xx status.
        """
        response = await self._send(
            descriptor,
            client.get(
                self.health_url(descriptor),
                headers=self.build_headers(descriptor),
                timeout=timeout,
            ),
        )
        if not response.is_success:
            self._handle_error(descriptor, response)

    async def _send(self, descriptor: ProviderDescriptor, call) -> httpx.Response:
        """Await an httpx call, wrapping transport failures."""
        try:
            return await call
        except httpx.TimeoutException as e:
            raise UpstreamTimeoutError(
                message=f"Request timed out: {e}",
                provider=descriptor.name,
                original_error=e,
            )
        except httpx.RequestError as e:
            raise UpstreamError(
                message=f"Request failed: {e}",
                provider=descriptor.name,
                original_error=e,
            )

    def _handle_error(
        self,
        descriptor: ProviderDescriptor,
        response: httpx.Response,
    ) -> None:
        """Raise for a non-success response.

        Raises:
            UpstreamProtocolError: Always.
        """
        try:
            error_data = response.json()
            error = error_data.get("error", response.text)
            error_message = error.get("message", str(error)) if isinstance(error, dict) else str(error)
        except (ValueError, AttributeError):
            error_message = response.text

        raise UpstreamProtocolError(
            message=f"HTTP {response.status_code}: {error_message}",
            provider=descriptor.name,
            status_code=response.status_code,
        )
