"""Test configuration for the model router."""

import httpx
import pytest

from model_router.config import RouterSettings
from model_router.providers import (
    GenerationRequest,
    MockAdapter,
    ProviderDescriptor,
    ProviderKind,
    build_adapters,
)
from model_router.routing import ProviderRegistry, Selector


@pytest.fixture
def settings() -> RouterSettings:
    """Settings isolated from the environment's .env file."""
    return RouterSettings(
        _env_file=None,
        mock_mode=True,
        cache_enabled=False,
        health_check_interval=3600,
    )


@pytest.fixture
def mock_adapter() -> MockAdapter:
    return MockAdapter()


@pytest.fixture
def adapters(settings, mock_adapter):
    """Adapter table with the shared mock adapter."""
    table = build_adapters(settings)
    table[ProviderKind.MOCK] = mock_adapter
    return table


@pytest.fixture
def make_provider():
    """Factory for mock-backed provider descriptors."""

    def factory(
        name: str,
        capabilities=("general",),
        priority: int = 100,
        healthy: bool = True,
        **kwargs,
    ) -> ProviderDescriptor:
        kwargs.setdefault("kind", ProviderKind.MOCK)
        kwargs.setdefault("endpoint", f"mock://{name}")
        descriptor = ProviderDescriptor(
            name=name,
            capabilities=capabilities,
            priority=priority,
            **kwargs,
        )
        if not healthy:
            descriptor.health.record_failure("probe failed")
        return descriptor

    return factory


@pytest.fixture
def abc_providers(make_provider) -> list[ProviderDescriptor]:
    """A and B healthy conversation providers, C unhealthy."""
    return [
        make_provider("A", capabilities=["conversation"], priority=2),
        make_provider("B", capabilities=["conversation", "analysis"], priority=1),
        make_provider("C", capabilities=["conversation"], priority=0, healthy=False),
    ]


@pytest.fixture
def registry(adapters, abc_providers) -> ProviderRegistry:
    return ProviderRegistry(adapters, abc_providers)


@pytest.fixture
def selector(registry) -> Selector:
    return Selector(registry)


@pytest.fixture
def sample_request() -> GenerationRequest:
    """Create a sample generation request."""
    return GenerationRequest(
        prompt="Hello there, how are you?",
        task_type="conversation",
        request_id="test-request-1",
    )


@pytest.fixture
async def http_client():
    async with httpx.AsyncClient() as client:
        yield client
