"""Tests for the ModelRouter orchestrator and provider factory."""

import json
import logging

import pytest
import redis

from model_router import ModelRouter
from model_router.cache import InMemoryCacheStorage
from model_router.characters import CharacterProfile, InMemoryCharacterRepository
from model_router.config import RouterSettings
from model_router.errors import (
    AllProvidersExhaustedError,
    BatchTooLargeError,
    CharacterNotFoundError,
    ConfigurationError,
)
from model_router.providers import (
    GenerationRequest,
    Pinned,
    ProviderKind,
    builtin_descriptors,
    load_descriptors,
)
from shared.models import HealthStatus


class UnavailableCache(InMemoryCacheStorage):
    """Cache whose backend refuses every connection."""

    async def get(self, key):
        raise redis.exceptions.ConnectionError("redis down")

    async def set(self, key, value, ttl=None):
        raise redis.exceptions.ConnectionError("redis down")


@pytest.fixture
async def router(settings, adapters, abc_providers, http_client):
    router = ModelRouter(
        settings=settings,
        adapters=adapters,
        descriptors=abc_providers,
        client=http_client,
    )
    yield router
    await router.shutdown()


@pytest.fixture
async def cached_router(settings, adapters, abc_providers, http_client):
    router = ModelRouter(
        settings=settings,
        adapters=adapters,
        descriptors=abc_providers,
        cache=InMemoryCacheStorage(),
        client=http_client,
    )
    yield router
    await router.shutdown()


class TestGenerate:
    """Tests for single generation."""

    @pytest.mark.asyncio
    async def test_generate(self, router, sample_request):
        result = await router.generate(sample_request)
        assert result.provider == "B"
        assert not result.cached

    @pytest.mark.asyncio
    async def test_cache_hit(self, cached_router, mock_adapter):
        first = await cached_router.generate(GenerationRequest(prompt="hi", request_id="r1"))
        second = await cached_router.generate(GenerationRequest(prompt="hi", request_id="r2"))

        assert not first.cached
        assert second.cached
        assert second.content == first.content
        assert second.request_id == "r2"
        assert len(mock_adapter.calls) == 1

    @pytest.mark.asyncio
    async def test_skip_cache(self, cached_router, mock_adapter):
        await cached_router.generate(GenerationRequest(prompt="hi"))
        result = await cached_router.generate(GenerationRequest(prompt="hi", skip_cache=True))

        assert not result.cached
        assert len(mock_adapter.calls) == 2

    @pytest.mark.asyncio
    async def test_failures_are_not_cached(self, cached_router, mock_adapter):
        mock_adapter.failing.update({"A", "B"})
        with pytest.raises(AllProvidersExhaustedError):
            await cached_router.generate(GenerationRequest(prompt="hi"))
        assert (await cached_router.cache.get_stats()).size == 0


    @pytest.mark.asyncio
    async def test_unavailable_cache_does_not_block_generation(
        self, settings, adapters, abc_providers, http_client, mock_adapter, caplog
    ):
        router = ModelRouter(
            settings=settings,
            adapters=adapters,
            descriptors=abc_providers,
            cache=UnavailableCache(),
            client=http_client,
        )

        with caplog.at_level(logging.WARNING):
            result = await router.generate(GenerationRequest(prompt="hi"))

        assert result.provider == "B"
        assert not result.cached
        assert mock_adapter.calls == ["B"]
        messages = [r.getMessage() for r in caplog.records]
        assert any("Cache lookup failed" in m for m in messages)
        assert any("Cache store failed" in m for m in messages)
    @pytest.mark.asyncio
    async def test_cache_disabled_by_settings(self, router):
        assert not router.cache_enabled


class TestBatchGenerate:
    """Tests for batch generation."""

    @pytest.mark.asyncio
    async def test_results_in_order(self, router):
        requests = [GenerationRequest(prompt=f"prompt {i}") for i in range(3)]
        results = await router.batch_generate(requests)

        assert [r.request_id for r in results] == [r.request_id for r in requests]

    @pytest.mark.asyncio
    async def test_too_large_rejected_before_dispatch(self, router, mock_adapter):
        requests = [GenerationRequest(prompt=f"p{i}") for i in range(11)]

        with pytest.raises(BatchTooLargeError) as exc_info:
            await router.batch_generate(requests)

        assert exc_info.value.limit == 10
        assert mock_adapter.calls == []

    @pytest.mark.asyncio
    async def test_item_failure_does_not_fail_batch(self, router):
        for descriptor in router.registry:
            descriptor.health.record_failure("down")
        results = await router.batch_generate([GenerationRequest(prompt="x")])
        assert isinstance(results[0], AllProvidersExhaustedError)


class TestInteract:
    """Tests for character interactions."""

    @pytest.mark.asyncio
    async def test_inline_character(self, router, mock_adapter):
        profile, result = await router.interact(
            {"name": "luna", "displayName": "Luna", "personality": {"mood": "cheerful"}},
            "How are you?",
        )

        assert profile.speaker == "Luna"
        assert "How are you?" in result.content
        assert mock_adapter.calls == ["B"]

    @pytest.mark.asyncio
    async def test_stored_character(self, settings, adapters, abc_providers, http_client):
        repository = InMemoryCharacterRepository(
            [CharacterProfile(id="c1", name="Sage", description="A wise mentor.")]
        )
        router = ModelRouter(
            settings=settings,
            adapters=adapters,
            descriptors=abc_providers,
            character_repository=repository,
            client=http_client,
        )

        profile, _ = await router.interact("c1", "Teach me something")
        assert profile.name == "Sage"

        with pytest.raises(CharacterNotFoundError):
            await router.interact("missing", "hello")

    @pytest.mark.asyncio
    async def test_pinned_interaction(self, router):
        _, result = await router.interact(
            {"name": "luna"},
            "hello",
            selection=Pinned(name="A"),
        )
        assert result.provider == "A"


class TestRateLimiting:
    """Tests for admission."""

    @pytest.mark.asyncio
    async def test_admit_until_limit(self, adapters, abc_providers, http_client):
        settings = RouterSettings(
            _env_file=None,
            cache_enabled=False,
            rate_limit_requests=2,
        )
        router = ModelRouter(
            settings=settings,
            adapters=adapters,
            descriptors=abc_providers,
            client=http_client,
        )

        assert await router.admit("caller") is None
        assert await router.admit("caller") is None
        rejection = await router.admit("caller")
        assert rejection is not None
        assert rejection.limit == 2
        assert rejection.retry_after > 0

    @pytest.mark.asyncio
    async def test_disabled(self, adapters, abc_providers, http_client):
        settings = RouterSettings(_env_file=None, rate_limit_enabled=False, cache_enabled=False)
        router = ModelRouter(
            settings=settings,
            adapters=adapters,
            descriptors=abc_providers,
            client=http_client,
        )
        assert not router.rate_limiting_enabled
        for _ in range(200):
            assert await router.admit("caller") is None


class TestHealthAndLifecycle:
    """Tests for health reporting and startup/shutdown."""

    @pytest.mark.asyncio
    async def test_degraded_when_some_unhealthy(self, router):
        status, providers = router.get_health()
        assert status == HealthStatus.DEGRADED
        assert not providers["C"].healthy

    @pytest.mark.asyncio
    async def test_unhealthy_when_none_healthy(self, router):
        for descriptor in router.registry:
            descriptor.health.record_failure("down")
        status, _ = router.get_health()
        assert status == HealthStatus.UNHEALTHY

    @pytest.mark.asyncio
    async def test_startup_probes_and_starts_loop(self, router):
        await router.startup()

        status, _ = router.get_health()
        assert status == HealthStatus.HEALTHY
        assert router.health_monitor.is_running

        await router.shutdown()
        assert not router.health_monitor.is_running

    @pytest.mark.asyncio
    async def test_list_models(self, router):
        assert [d.name for d in router.list_models()] == ["A", "B", "C"]


class TestProviderFactory:
    """Tests for descriptor construction."""

    def test_builtin_without_credentials(self):
        settings = RouterSettings(_env_file=None)
        names = [d.name for d in builtin_descriptors(settings)]
        assert names == ["gemma3", "chatterbox"]

    def test_builtin_with_credentials(self):
        settings = RouterSettings(
            _env_file=None,
            openrouter_api_key="sk-or",
            runpod_api_key="rp",
            runpod_endpoint_id="ep1",
        )
        descriptors = {d.name: d for d in builtin_descriptors(settings)}

        assert descriptors["openrouter"].kind == ProviderKind.CHAT_COMPLETIONS
        assert descriptors["openrouter"].fallback
        assert descriptors["runpod"].options["endpoint_id"] == "ep1"
        assert descriptors["gemma3"].supports("code")
        assert descriptors["chatterbox"].supports("roleplay")

    def test_runpod_needs_endpoint_id(self):
        settings = RouterSettings(_env_file=None, openrouter_api_key="sk-or", runpod_api_key="rp")
        names = [d.name for d in builtin_descriptors(settings)]
        assert names == ["gemma3", "chatterbox", "openrouter"]

    def test_mock_mode_uses_mock_kind(self, settings):
        descriptors = builtin_descriptors(settings)
        assert len(descriptors) == 4
        assert all(d.kind == ProviderKind.MOCK for d in descriptors)

    def test_load_descriptors(self, tmp_path):
        path = tmp_path / "providers.json"
        path.write_text(
            json.dumps(
                {
                    "providers": [
                        {
                            "name": "local",
                            "kind": "completions",
                            "endpoint": "http://localhost:8000/v1/completions",
                            "capabilities": ["code"],
                            "priority": 1,
                        }
                    ]
                }
            )
        )

        descriptors = load_descriptors(path)
        assert descriptors[0].name == "local"
        assert descriptors[0].capabilities == frozenset({"code"})

    @pytest.mark.parametrize(
        "content",
        ["not json", '{"providers": 5}', '[{"name": "x"}]'],
    )
    def test_load_descriptors_rejects_bad_files(self, tmp_path, content):
        path = tmp_path / "providers.json"
        path.write_text(content)
        with pytest.raises(ConfigurationError):
            load_descriptors(path)

    def test_load_descriptors_missing_file(self, tmp_path):
        with pytest.raises(ConfigurationError, match="not found"):
            load_descriptors(tmp_path / "nope.json")

    @pytest.mark.asyncio
    async def test_router_from_mock_settings(self, settings, http_client):
        router = ModelRouter(settings=settings, client=http_client)
        result = await router.generate(GenerationRequest(prompt="write a loop", task_type="code"))
        assert result.provider == "gemma3"
        await router.shutdown()
