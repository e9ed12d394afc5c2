"""Background provider health probing.

Each tick probes every registered provider concurrently. A probe that
fails for any reason marks the provider unhealthy at once; a successful
probe is the only way an unhealthy provider becomes eligible again.
"""

import asyncio
from datetime import datetime, timezone
from typing import Mapping

import httpx

from model_router.errors import UpstreamError
from model_router.providers.base import ProviderAdapter
from model_router.providers.models import ProviderDescriptor, ProviderKind
from model_router.routing.registry import ProviderRegistry
from shared.logging import get_logger, log_execution_time

logger = get_logger(__name__)


class HealthMonitor:
    """Keeps each provider's embedded health state current."""

    def __init__(
        self,
        registry: ProviderRegistry,
        adapters: Mapping[ProviderKind, ProviderAdapter],
        client: httpx.AsyncClient,
        interval: float = 30.0,
        timeout: float = 5.0,
    ) -> None:
        """Initialize the health monitor.

        Args:
            registry: Providers to probe.
            adapters: Adapter table keyed by provider kind.
            client: Shared HTTP client.
            interval: Seconds between ticks.
            timeout: Timeout for a single probe.
        """
        self._registry = registry
        self._adapters = adapters
        self._client = client
        self._interval = interval
        self._timeout = timeout
        self._probe_task: asyncio.Task | None = None

    @property
    def is_running(self) -> bool:
        return self._probe_task is not None and not self._probe_task.done()

    async def probe(self, descriptor: ProviderDescriptor) -> bool:
        """Probe one provider and update its health.

        Args:
            descriptor: Provider to probe.

        Returns:
            True if the provider answered healthy.
        """
        adapter = self._adapters[descriptor.kind]
        was_healthy = descriptor.is_healthy
        try:
            await asyncio.wait_for(
                adapter.check_health(descriptor, self._client, self._timeout),
                self._timeout,
            )
        except asyncio.TimeoutError:
            reason = f"[{descriptor.name}] Health check timed out after {self._timeout:g}s"
        except UpstreamError as e:
            reason = str(e)
        else:
            descriptor.health.record_success()
            if not was_healthy:
                logger.info(
                    f"Provider {descriptor.name} recovered",
                    extra={"provider": descriptor.name},
                )
            return True

        descriptor.health.record_failure(reason, at=datetime.now(timezone.utc))
        if was_healthy:
            logger.warning(
                f"Provider {descriptor.name} marked unhealthy: {reason}",
                extra={"provider": descriptor.name},
            )
        return False

    @log_execution_time(message="Health check tick")
    async def probe_all(self) -> dict[str, bool]:
        """Probe every provider once, concurrently.

        Returns:
            Mapping of provider name to probe outcome.
        """
        providers = self._registry.list_providers()
        outcomes = await asyncio.gather(*(self.probe(p) for p in providers))
        return {p.name: ok for p, ok in zip(providers, outcomes)}

    def start_probing(self, interval: float | None = None) -> None:
        """Start the background probe loop.

        Does nothing if the loop is already running.

        Args:
            interval: Override for the seconds between ticks.
        """
        if self.is_running:
            return
        if interval is not None:
            self._interval = interval

        async def probe_loop() -> None:
            while True:
                await asyncio.sleep(self._interval)
                try:
                    await self.probe_all()
                except Exception:
                    logger.exception("Health check tick failed")

        self._probe_task = asyncio.create_task(probe_loop())
        logger.info(f"Health probing started every {self._interval:g}s")

    async def stop_probing(self) -> None:
        """Stop the background probe loop. Safe to call repeatedly."""
        if self._probe_task is None:
            return
        self._probe_task.cancel()
        try:
            await self._probe_task
        except asyncio.CancelledError:
            pass
        self._probe_task = None
        logger.info("Health probing stopped")
