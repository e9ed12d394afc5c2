"""Request dispatch with provider fallback.

The dispatcher asks the selector for a provider, calls it through the
adapter for its kind under a task-dependent timeout, and on failure marks
the provider unhealthy and asks again with every attempted provider
excluded. The loop ends with a result or with the full list of failures.
"""

import asyncio
from datetime import datetime, timezone
from typing import Collection, Mapping

import httpx

from model_router.errors import (
    AllProvidersExhaustedError,
    AttemptFailure,
    ConfigurationError,
    NoHealthyProviderError,
    UpstreamError,
    UpstreamTimeoutError,
)
from model_router.providers.base import ProviderAdapter
from model_router.providers.models import (
    GenerationRequest,
    GenerationResult,
    ProviderKind,
)
from model_router.providers.runpod import MEDIA_TASK_TYPES
from model_router.routing.selector import Selector
from shared.logging import LogContext, get_logger

logger = get_logger(__name__)


class Dispatcher:
    """Runs the select, call, fall back loop for a single request."""

    def __init__(
        self,
        selector: Selector,
        adapters: Mapping[ProviderKind, ProviderAdapter],
        client: httpx.AsyncClient,
        request_timeout: float = 60.0,
        media_request_timeout: float = 120.0,
        media_task_types: Collection[str] = MEDIA_TASK_TYPES,
    ) -> None:
        """Initialize the dispatcher.

        Args:
            selector: Provider selector.
            adapters: Adapter table keyed by provider kind.
            client: Shared HTTP client.
            request_timeout: Per-call timeout for text tasks.
            media_request_timeout: Per-call timeout for media tasks.
            media_task_types: Task types that get the media timeout.
        """
        self._selector = selector
        self._adapters = adapters
        self._client = client
        self._request_timeout = request_timeout
        self._media_request_timeout = media_request_timeout
        self._media_task_types = frozenset(t.lower() for t in media_task_types)

    def timeout_for(self, task_type: str) -> float:
        """Per-call timeout for a task type."""
        if task_type.lower() in self._media_task_types:
            return self._media_request_timeout
        return self._request_timeout

    async def dispatch(self, request: GenerationRequest) -> GenerationResult:
        """Serve a request, falling back across providers.

        Args:
            request: Canonical request.

        Returns:
            Result of the first provider that succeeded, with
            ``attempted`` listing every provider tried.

        Raises:
            AllProvidersExhaustedError: If every eligible provider failed,
                or none was eligible to begin with.
            NotFoundError: If a strictly pinned provider is unknown.
        """
        attempts: list[AttemptFailure] = []
        attempted: list[str] = []
        timeout = self.timeout_for(request.task_type)

        with LogContext(request_id=request.request_id, task_type=request.task_type):
            while True:
                try:
                    descriptor = self._selector.select(request, exclude=attempted)
                except NoHealthyProviderError as e:
                    if attempts:
                        logger.error(
                            f"All providers failed for request {request.request_id}",
                            extra={"attempted": attempted},
                        )
                    raise AllProvidersExhaustedError(attempts, reason=str(e)) from e

                adapter = self._adapters.get(descriptor.kind)
                if adapter is None:
                    raise ConfigurationError(
                        f"No adapter for provider kind '{descriptor.kind.value}'"
                    )

                attempted.append(descriptor.name)
                try:
                    result = await asyncio.wait_for(
                        adapter.generate(descriptor, request, self._client, timeout),
                        timeout,
                    )
                except asyncio.TimeoutError as e:
                    error: UpstreamError = UpstreamTimeoutError(
                        message=f"No response within {timeout:g}s",
                        provider=descriptor.name,
                        original_error=e,
                    )
                except UpstreamError as e:
                    error = e
                else:
                    result.attempted = list(attempted)
                    if len(attempted) > 1:
                        logger.info(
                            f"Request served by fallback provider {descriptor.name}",
                            extra={"attempted": attempted},
                        )
                    return result

                reason = str(error)
                descriptor.health.record_failure(reason, at=datetime.now(timezone.utc))
                attempts.append(AttemptFailure(provider=descriptor.name, reason=reason))
                logger.warning(
                    f"Provider {descriptor.name} failed: {reason}",
                    extra={"provider": descriptor.name, "status_code": error.status_code},
                )
