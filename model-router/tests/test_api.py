"""Tests for the HTTP API."""

import pytest
from fastapi.testclient import TestClient

from model_router import ModelRouter
from model_router.api.schemas import GenerateRequestSchema
from model_router.config import RouterSettings
from model_router.main import create_app


def build_client(adapters, descriptors, **overrides) -> TestClient:
    overrides.setdefault("cache_enabled", False)
    settings = RouterSettings(_env_file=None, health_check_interval=3600, **overrides)
    model_router = ModelRouter(settings=settings, adapters=adapters, descriptors=descriptors)
    return TestClient(create_app(model_router=model_router))


@pytest.fixture
def client(adapters, abc_providers, mock_adapter):
    """Client whose startup probe keeps C unhealthy."""
    mock_adapter.unhealthy.add("C")
    with build_client(adapters, abc_providers) as client:
        yield client


class TestGenerateEndpoint:
    """Tests for POST /generate."""

    def test_generate(self, client):
        response = client.post("/generate", json={"prompt": "Hello", "type": "conversation"})

        assert response.status_code == 200
        data = response.json()
        assert data["provider"] == "B"
        assert data["attempted"] == ["B"]
        assert data["cached"] is False
        assert "X-Correlation-ID" in response.headers

    def test_pinned_model(self, client):
        response = client.post("/generate", json={"prompt": "Hello", "model": "A"})
        assert response.json()["provider"] == "A"

    def test_fallback_is_reported(self, client, mock_adapter):
        mock_adapter.failing.add("B")
        response = client.post("/generate", json={"prompt": "Hello", "type": "conversation"})

        assert response.status_code == 200
        assert response.json()["attempted"][-1] == response.json()["provider"]
        assert response.json()["attempted"][0] == "B"

    def test_all_failed_returns_503(self, client, mock_adapter):
        mock_adapter.failing.update({"A", "B", "C"})
        response = client.post("/generate", json={"prompt": "Hello", "type": "conversation"})

        assert response.status_code == 503
        detail = response.json()["detail"]
        assert detail["error"] == "all_providers_failed"
        assert detail["attempted"] == ["B", "A"]
        assert detail["last_error"]

    def test_empty_prompt_rejected(self, client):
        response = client.post("/generate", json={"prompt": ""})
        assert response.status_code == 422

    def test_chat_messages(self, client):
        response = client.post(
            "/generate",
            json={
                "messages": [
                    {"role": "system", "content": "Be kind."},
                    {"role": "user", "content": "Hello"},
                ]
            },
        )

        assert response.status_code == 200
        assert response.json()["provider"] == "B"

    @pytest.mark.parametrize(
        "body",
        [
            {},
            {"prompt": "Hello", "messages": [{"role": "user", "content": "Hello"}]},
            {"messages": []},
        ],
    )
    def test_prompt_or_messages_required(self, client, body):
        assert client.post("/generate", json=body).status_code == 422

    def test_strict_unknown_pin_returns_404(self, adapters, abc_providers):
        with build_client(adapters, abc_providers, strict_pinning=True) as client:
            response = client.post("/generate", json={"prompt": "Hello", "model": "nope"})

        assert response.status_code == 404
        assert response.json()["detail"]["error"] == "provider_not_found"


class TestGenerateRequestSchema:
    """Tests for turning request bodies into canonical requests."""

    def test_messages_become_conversation_request(self):
        body = GenerateRequestSchema(
            messages=[
                {"role": "system", "content": "Be kind."},
                {"role": "user", "content": "Hi"},
            ],
            options={"max_tokens": 40},
        )
        request = body.to_request("caller-1")

        assert request.prompt == "system: Be kind.\nuser: Hi"
        assert request.task_type == "conversation"
        assert request.max_tokens == 40
        assert request.caller_id == "caller-1"

    def test_explicit_type_wins_for_messages(self):
        body = GenerateRequestSchema(
            messages=[{"role": "user", "content": "Hi"}],
            type="roleplay",
        )
        assert body.to_request("c").task_type == "roleplay"

    def test_prompt_defaults_to_general(self):
        assert GenerateRequestSchema(prompt="Hi").to_request("c").task_type == "general"


class TestRateLimit:
    """Tests for rate limiting at the API boundary."""

    def test_rejects_with_retry_after(self, adapters, abc_providers, mock_adapter):
        with build_client(adapters, abc_providers, rate_limit_requests=2) as client:
            for _ in range(2):
                assert client.post("/generate", json={"prompt": "hi"}).status_code == 200
            response = client.post("/generate", json={"prompt": "hi"})

        assert response.status_code == 429
        assert int(response.headers["Retry-After"]) >= 1
        assert response.json()["detail"]["error"] == "rate_limit_exceeded"
        assert len(mock_adapter.calls) == 2

    def test_api_keys_are_limited_separately(self, adapters, abc_providers):
        with build_client(adapters, abc_providers, rate_limit_requests=1) as client:
            first = client.post("/generate", json={"prompt": "hi"}, headers={"X-API-Key": "k1"})
            second = client.post("/generate", json={"prompt": "hi"}, headers={"X-API-Key": "k2"})
            third = client.post("/generate", json={"prompt": "hi"}, headers={"X-API-Key": "k1"})

        assert first.status_code == 200
        assert second.status_code == 200
        assert third.status_code == 429

    def test_batch_counts_once(self, adapters, abc_providers):
        with build_client(adapters, abc_providers, rate_limit_requests=1) as client:
            response = client.post("/batch/generate", json={"prompts": ["a", "b", "c"]})

        assert response.status_code == 200
        assert response.json()["succeeded"] == 3


class TestBatchEndpoint:
    """Tests for POST /batch/generate."""

    def test_batch(self, client):
        response = client.post("/batch/generate", json={"prompts": ["one", "two"]})

        assert response.status_code == 200
        data = response.json()
        assert [item["index"] for item in data["results"]] == [0, 1]
        assert data["succeeded"] == 2
        assert data["failed"] == 0

    def test_too_large_batch_is_400_without_calls(self, client, mock_adapter):
        response = client.post("/batch/generate", json={"prompts": [f"p{i}" for i in range(11)]})

        assert response.status_code == 400
        assert response.json()["detail"]["error"] == "batch_too_large"
        assert mock_adapter.calls == []

    def test_failed_items_reported_in_place(self, client, mock_adapter):
        mock_adapter.failing.update({"A", "B", "C"})
        response = client.post("/batch/generate", json={"prompts": ["x"]})

        assert response.status_code == 200
        item = response.json()["results"][0]
        assert item["success"] is False
        assert item["error"]["error"] == "all_providers_failed"


class TestCharacterEndpoint:
    """Tests for POST /character/interact."""

    def test_inline_character(self, client):
        response = client.post(
            "/character/interact",
            json={
                "character": {"name": "luna", "displayName": "Luna"},
                "message": "Hi!",
                "context": [{"role": "user", "content": "We met yesterday."}],
            },
        )

        assert response.status_code == 200
        data = response.json()
        assert data["character"] == "Luna"
        assert "responseTime" in data

    def test_unknown_character_id(self, client):
        response = client.post("/character/interact", json={"character": "ghost", "message": "Hi"})

        assert response.status_code == 404
        assert response.json()["detail"]["error"] == "character_not_found"


class TestInfoEndpoints:
    """Tests for health, model listing and root."""

    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "degraded"
        assert set(data["models"]) == {"A", "B", "C"}
        assert data["models"]["A"]["lastCheck"] is not None
        assert data["models"]["A"]["consecutiveFailures"] == 0
        assert data["models"]["C"]["healthy"] is False
        assert "HTTP 503" in data["models"]["C"]["lastError"]

    def test_health_is_not_rate_limited(self, adapters, abc_providers):
        with build_client(adapters, abc_providers, rate_limit_requests=1) as client:
            statuses = [client.get("/health").status_code for _ in range(3)]
        assert statuses == [200, 200, 200]

    def test_models(self, client):
        response = client.get("/models")

        assert response.status_code == 200
        models = response.json()["models"]
        assert [m["id"] for m in models] == ["A", "B", "C"]
        assert models[1]["capabilities"] == ["analysis", "conversation"]

    def test_root(self, client):
        data = client.get("/").json()
        assert data["providers"] == 3
        assert "generate" in data["endpoints"]

    def test_docs_hidden_in_production(self, adapters, abc_providers):
        with build_client(adapters, abc_providers, environment="production") as client:
            assert client.get("/docs").status_code == 404
            assert client.get("/openapi.json").status_code == 404
