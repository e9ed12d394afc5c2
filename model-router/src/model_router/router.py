"""Main router orchestrator.

Wires the registry, health monitor, selector, dispatcher, rate limiter,
response cache and character support together behind one object that the
HTTP API (or any other caller) talks to.
"""

import asyncio
from typing import Any, Mapping, Sequence

import httpx

from model_router.cache import CacheStorage, create_cache_storage
from model_router.characters import (
    CharacterProfile,
    CharacterPromptBuilder,
    CharacterRepository,
)
from model_router.config import RouterSettings, get_router_settings
from model_router.errors import (
    AllProvidersExhaustedError,
    BatchTooLargeError,
    NotFoundError,
    RouterError,
)
from model_router.providers.base import ProviderAdapter
from model_router.providers.factory import build_adapters, build_descriptors
from model_router.providers.models import (
    GenerationRequest,
    GenerationResult,
    HealthState,
    ProviderDescriptor,
    ProviderKind,
)
from model_router.resilience.rate_limiter import (
    RateLimiter,
    RateLimitExceeded,
    create_rate_limiter,
)
from model_router.routing.dispatcher import Dispatcher
from model_router.routing.health import HealthMonitor
from model_router.routing.registry import ProviderRegistry
from model_router.routing.selector import Selector
from shared.logging import get_logger
from shared.models import HealthStatus

logger = get_logger(__name__)


class ModelRouter:
    """Routes generation requests across model providers.

    Handles:
    - Per-caller rate limiting
    - Provider selection and fallback
    - Background health probing
    - Response caching
    - Character interactions
    """

    def __init__(
        self,
        settings: RouterSettings | None = None,
        adapters: Mapping[ProviderKind, ProviderAdapter] | None = None,
        descriptors: Sequence[ProviderDescriptor] | None = None,
        cache: CacheStorage | None = None,
        rate_limiter: RateLimiter | None = None,
        character_repository: CharacterRepository | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the router.

        Args:
            settings: Router settings.
            adapters: Adapter table. Built from settings if None.
            descriptors: Providers to register. Built from settings if None.
            cache: Response cache. Built from settings if None.
            rate_limiter: Rate limiter. Built from settings if None.
            character_repository: Store for characters referenced by id.
            client: Shared HTTP client. Created and owned here if None.

        Raises:
            ConfigurationError: If a provider descriptor is unusable.
        """
        self._settings = settings or get_router_settings()
        settings = self._settings

        self._adapters = dict(adapters) if adapters is not None else build_adapters(settings)
        if descriptors is None:
            descriptors = build_descriptors(settings)
        self._registry = ProviderRegistry(self._adapters, descriptors)

        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            timeout=httpx.Timeout(
                settings.request_timeout,
                connect=settings.connect_timeout,
            ),
        )

        self._health_monitor = HealthMonitor(
            registry=self._registry,
            adapters=self._adapters,
            client=self._client,
            interval=settings.health_check_interval,
            timeout=settings.health_check_timeout,
        )
        self._selector = Selector(
            registry=self._registry,
            strict_pinning=settings.strict_pinning,
            task_affinity=settings.task_affinity,
            high_capacity_tokens=settings.high_capacity_tokens,
        )
        self._dispatcher = Dispatcher(
            selector=self._selector,
            adapters=self._adapters,
            client=self._client,
            request_timeout=settings.request_timeout,
            media_request_timeout=settings.media_request_timeout,
            media_task_types=settings.media_task_types,
        )

        self._rate_limiter = rate_limiter or create_rate_limiter(settings)

        if cache is not None:
            self._cache: CacheStorage | None = cache
        elif settings.cache_enabled:
            self._cache = create_cache_storage(settings)
        else:
            self._cache = None

        self._characters = CharacterPromptBuilder(character_repository)

    @property
    def settings(self) -> RouterSettings:
        return self._settings

    @property
    def registry(self) -> ProviderRegistry:
        return self._registry

    @property
    def selector(self) -> Selector:
        return self._selector

    @property
    def dispatcher(self) -> Dispatcher:
        return self._dispatcher

    @property
    def health_monitor(self) -> HealthMonitor:
        return self._health_monitor

    @property
    def rate_limiter(self) -> RateLimiter | None:
        return self._rate_limiter

    @property
    def cache(self) -> CacheStorage | None:
        return self._cache

    @property
    def cache_enabled(self) -> bool:
        """Check if caching is enabled."""
        return self._cache is not None

    @property
    def rate_limiting_enabled(self) -> bool:
        """Check if rate limiting is enabled."""
        return self._rate_limiter is not None

    async def admit(self, caller_id: str) -> RateLimitExceeded | None:
        """Count one request against a caller's limit.

        Args:
            caller_id: Caller identity.

        Returns:
            None if admitted, otherwise the rejection.
        """
        if self._rate_limiter is None:
            return None
        if await self._rate_limiter.admit(caller_id):
            return None
        rejection = await self._rate_limiter.exceeded(caller_id)
        logger.info(
            f"Rate limit exceeded for {caller_id}",
            extra={"caller_id": caller_id, "retry_after": rejection.retry_after},
        )
        return rejection

    async def generate(self, request: GenerationRequest) -> GenerationResult:
        """Generate content for a request.

        Args:
            request: Canonical request.

        Returns:
            GenerationResult, flagged ``cached`` when served from cache.

        Raises:
            AllProvidersExhaustedError: If no provider could serve it.
            NotFoundError: If a strictly pinned provider is unknown.
        """
        use_cache = self._cache is not None and not request.skip_cache
        cache_key = request.cache_key()

        if use_cache:
            cached = await self._cache_lookup(cache_key, request)
            if cached is not None:
                return cached

        result = await self._dispatcher.dispatch(request)

        if use_cache:
            await self._cache_store(cache_key, result)
        return result

    async def _cache_lookup(
        self,
        cache_key: str,
        request: GenerationRequest,
    ) -> GenerationResult | None:
        """Cached result for the request, or None on a miss.

        A failing cache counts as a miss.
        """
        try:
            cached = await self._cache.get(cache_key)
            if cached is None:
                return None
            result = GenerationResult.model_validate(
                {**cached, "cached": True, "request_id": request.request_id}
            )
        except Exception as e:
            logger.warning(
                f"Cache lookup failed, dispatching: {e!r}",
                extra={"request_id": request.request_id},
            )
            return None

        logger.info(
            "Cache hit",
            extra={"request_id": request.request_id, "provider": result.provider},
        )
        return result

    async def _cache_store(self, cache_key: str, result: GenerationResult) -> None:
        """Store a fresh result; a failing cache only costs the entry."""
        try:
            await self._cache.set(
                cache_key,
                result.model_dump(mode="json", exclude={"cached"}),
                ttl=self._settings.cache_ttl_seconds,
            )
        except Exception as e:
            logger.warning(
                f"Cache store failed: {e!r}",
                extra={"request_id": result.request_id},
            )

    async def batch_generate(
        self,
        requests: Sequence[GenerationRequest],
    ) -> list[GenerationResult | RouterError]:
        """Generate content for several requests concurrently.

        The size cap is checked before any provider is contacted. A failed
        item does not fail the batch; its error takes its place.

        Args:
            requests: Requests in batch order.

        Returns:
            One result or error per request, in order.

        Raises:
            BatchTooLargeError: If the batch exceeds ``batch_max_size``.
        """
        limit = self._settings.batch_max_size
        if len(requests) > limit:
            raise BatchTooLargeError(len(requests), limit)

        async def run(request: GenerationRequest) -> GenerationResult | RouterError:
            try:
                return await self.generate(request)
            except (AllProvidersExhaustedError, NotFoundError) as e:
                return e

        return list(await asyncio.gather(*(run(r) for r in requests)))

    async def interact(
        self,
        character: str | dict[str, Any] | CharacterProfile,
        message: str,
        context: Any = None,
        **kwargs: Any,
    ) -> tuple[CharacterProfile, GenerationResult]:
        """Generate a character's reply to a message.

        Args:
            character: Character id, inline persona or profile.
            message: The user's message.
            context: Optional prior conversation or facts.
            **kwargs: Other GenerationRequest fields.

        Returns:
            The resolved character and the generation result.

        Raises:
            CharacterNotFoundError: If the character id is unknown.
            AllProvidersExhaustedError: If no provider could serve it.
        """
        profile, request = await self._characters.build(character, message, context, **kwargs)
        result = await self.generate(request)
        return profile, result

    def get_health(self) -> tuple[HealthStatus, dict[str, HealthState]]:
        """Overall status and per-provider health.

        Returns:
            ``healthy`` if every provider is, ``unhealthy`` if none is,
            ``degraded`` otherwise; plus each provider's health state.
        """
        providers = self._registry.list_providers()
        healthy = sum(1 for p in providers if p.is_healthy)
        if providers and healthy == len(providers):
            status = HealthStatus.HEALTHY
        elif healthy == 0:
            status = HealthStatus.UNHEALTHY
        else:
            status = HealthStatus.DEGRADED
        return status, {p.name: p.health for p in providers}

    def list_models(self) -> list[ProviderDescriptor]:
        """Registered providers in registration order."""
        return self._registry.list_providers()

    async def startup(self) -> None:
        """Probe providers once, then keep probing in the background."""
        await self._health_monitor.probe_all()
        self._health_monitor.start_probing()

        logger.info(
            "Model router started",
            extra={
                "providers": [p.name for p in self._registry],
                "healthy": [p.name for p in self._registry.healthy()],
                "cache_enabled": self.cache_enabled,
                "rate_limiting_enabled": self.rate_limiting_enabled,
            },
        )

    async def shutdown(self) -> None:
        """Stop probing and release resources."""
        await self._health_monitor.stop_probing()
        if self._cache is not None:
            await self._cache.close()
        if self._owns_client:
            await self._client.aclose()
        logger.info("Model router shutdown complete")
