"""Score-based provider selection.

Every healthy candidate gets a deterministic score from its declared
capabilities, a per-deployment affinity table and its token capacity.
The highest score wins; ties go to the lowest priority value and then
to registration order.
"""

from dataclasses import dataclass
from typing import Collection, Mapping

from model_router.errors import (
    NoHealthyProviderError,
    NotFoundError,
    PinnedProviderUnavailableError,
)
from model_router.providers.models import GenerationRequest, Pinned, ProviderDescriptor
from model_router.routing.registry import ProviderRegistry
from shared.logging import get_logger

logger = get_logger(__name__)


CAPABILITY_SCORE = 20
AFFINITY_SCORE = 10
CAPACITY_SCORE = 5
HEALTHY_SCORE = 5

LONG_PROMPT_CHARS = 1000
SHORT_PROMPT_CHARS = 500


@dataclass(frozen=True)
class ScoredProvider:
    """A candidate with its selection score."""

    descriptor: ProviderDescriptor
    score: int


class Selector:
    """Picks the provider that should serve a request."""

    def __init__(
        self,
        registry: ProviderRegistry,
        strict_pinning: bool = False,
        task_affinity: Mapping[str, Collection[str]] | None = None,
        high_capacity_tokens: int = 1000,
    ) -> None:
        """Initialize the selector.

        Args:
            registry: Registered providers.
            strict_pinning: Raise instead of auto-selecting when a pinned
                provider is unknown or unhealthy.
            task_affinity: Task type to names of providers specialised in it.
            high_capacity_tokens: ``max_tokens`` at or above which a
                provider counts as high capacity.
        """
        self._registry = registry
        self.strict_pinning = strict_pinning
        self._affinity = {
            task.lower(): frozenset(names)
            for task, names in (task_affinity or {}).items()
        }
        self._high_capacity_tokens = high_capacity_tokens

    def score(self, descriptor: ProviderDescriptor, request: GenerationRequest) -> int:
        """Score a healthy candidate for a request."""
        total = HEALTHY_SCORE
        if descriptor.supports(request.task_type):
            total += CAPABILITY_SCORE
        if descriptor.name in self._affinity.get(request.task_type, ()):
            total += AFFINITY_SCORE
        if self._has_fitting_capacity(descriptor, request):
            total += CAPACITY_SCORE
        return total

    def _has_fitting_capacity(
        self,
        descriptor: ProviderDescriptor,
        request: GenerationRequest,
    ) -> bool:
        # Long prompts favour large providers, short prompts fast ones
        prompt_chars = len(request.prompt)
        if prompt_chars > LONG_PROMPT_CHARS:
            return descriptor.max_tokens >= self._high_capacity_tokens
        if prompt_chars < SHORT_PROMPT_CHARS:
            return descriptor.max_tokens < self._high_capacity_tokens
        return descriptor.max_tokens > 2 * request.estimated_tokens

    def rank(
        self,
        request: GenerationRequest,
        exclude: Collection[str] = (),
    ) -> list[ScoredProvider]:
        """Order eligible providers from best to worst.

        Only healthy providers not in ``exclude`` are eligible. Providers
        flagged as fallback are ranked only when no other provider is.

        Args:
            request: Request being routed.
            exclude: Provider names to skip.

        Returns:
            Scored providers, best first. Empty if none is eligible.
        """
        candidates = [
            (index, descriptor)
            for index, descriptor in enumerate(self._registry.list_providers())
            if descriptor.is_healthy and descriptor.name not in exclude
        ]
        pool = [(i, d) for i, d in candidates if not d.fallback]
        if not pool:
            pool = candidates

        scored = [
            (index, ScoredProvider(descriptor, self.score(descriptor, request)))
            for index, descriptor in pool
        ]
        scored.sort(key=lambda item: (-item[1].score, item[1].descriptor.priority, item[0]))
        return [item for _, item in scored]

    def select(
        self,
        request: GenerationRequest,
        exclude: Collection[str] = (),
    ) -> ProviderDescriptor:
        """Select a provider for the request.

        A healthy pinned provider is returned as-is, bypassing scoring.

        Args:
            request: Request being routed.
            exclude: Provider names already attempted.

        Returns:
            The chosen provider.

        Raises:
            NoHealthyProviderError: If no provider is eligible.
            NotFoundError: Strict pinning and the pinned name is unknown.
            PinnedProviderUnavailableError: Strict pinning and the pinned
                provider is unhealthy.
        """
        selection = request.selection
        if isinstance(selection, Pinned):
            if selection.name not in exclude:
                pinned = self._resolve_pin(selection.name)
                if pinned is not None:
                    return pinned
            elif self.strict_pinning:
                # A strictly pinned request never moves to another provider
                raise PinnedProviderUnavailableError(selection.name)

        ranked = self.rank(request, exclude)
        if not ranked:
            raise NoHealthyProviderError(
                f"No healthy provider available for task type '{request.task_type}'"
            )

        best = ranked[0]
        logger.debug(
            f"Selected provider {best.descriptor.name}",
            extra={
                "provider": best.descriptor.name,
                "score": best.score,
                "task_type": request.task_type,
                "excluded": sorted(exclude),
            },
        )
        return best.descriptor

    def _resolve_pin(self, name: str) -> ProviderDescriptor | None:
        """Return the pinned provider, or None to fall back to scoring."""
        if name not in self._registry:
            if self.strict_pinning:
                raise NotFoundError(name)
            logger.info(f"Pinned provider {name} is not registered, selecting automatically")
            return None

        descriptor = self._registry.get(name)
        if descriptor.is_healthy:
            return descriptor
        if self.strict_pinning:
            raise PinnedProviderUnavailableError(name)
        logger.info(f"Pinned provider {name} is unhealthy, selecting automatically")
        return None
