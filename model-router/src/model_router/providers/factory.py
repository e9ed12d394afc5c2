"""Factories for wire adapters and provider descriptors.

Adapters are stateless and keyed by ``ProviderKind``. Descriptors come
either from a JSON providers file or from the built-in deployment set,
which only includes remote providers whose credentials are configured.
"""

import json
from pathlib import Path

from pydantic import ValidationError

from model_router.config import RouterSettings
from model_router.errors import ConfigurationError
from model_router.providers.base import ProviderAdapter
from model_router.providers.chat_completions import ChatCompletionsAdapter
from model_router.providers.completions import CompletionsAdapter
from model_router.providers.mock import MockAdapter
from model_router.providers.models import ProviderDescriptor, ProviderKind
from model_router.providers.runpod import RunPodAdapter
from shared.logging import get_logger

logger = get_logger(__name__)


AdapterTable = dict[ProviderKind, ProviderAdapter]


def build_adapters(settings: RouterSettings) -> AdapterTable:
    """Create one adapter per provider kind.

    Args:
        settings: Router settings.

    Returns:
        Mapping of kind to adapter instance.
    """
    return {
        ProviderKind.COMPLETIONS: CompletionsAdapter(),
        ProviderKind.CHAT_COMPLETIONS: ChatCompletionsAdapter(),
        ProviderKind.RUNPOD: RunPodAdapter(media_task_types=settings.media_task_types),
        ProviderKind.MOCK: MockAdapter(),
    }


def builtin_descriptors(settings: RouterSettings) -> list[ProviderDescriptor]:
    """Descriptors for the default deployment.

    Local servers are always present. OpenRouter needs an API key and
    RunPod needs both a key and an endpoint id. In mock mode every
    provider is served by the mock adapter and credentials are not needed.
    """
    mock = settings.mock_mode
    configured = settings.providers_configured
    descriptors = [
        ProviderDescriptor(
            name="gemma3",
            kind=ProviderKind.MOCK if mock else ProviderKind.COMPLETIONS,
            endpoint=settings.gemma3_url,
            capabilities={"text-generation", "analysis", "code"},
            model="gemma-3",
            max_tokens=2048,
            priority=1,
        ),
        ProviderDescriptor(
            name="chatterbox",
            kind=ProviderKind.MOCK if mock else ProviderKind.COMPLETIONS,
            endpoint=settings.chatterbox_url,
            capabilities={"conversation", "roleplay", "character-interaction"},
            model="chatterbox",
            max_tokens=500,
            temperature=0.8,
            priority=2,
        ),
    ]

    if mock or "openrouter" in configured:
        descriptors.append(
            ProviderDescriptor(
                name="openrouter",
                kind=ProviderKind.MOCK if mock else ProviderKind.CHAT_COMPLETIONS,
                endpoint=settings.openrouter_url,
                capabilities={"all"},
                model=settings.openrouter_model,
                max_tokens=1000,
                priority=3,
                fallback=True,
                api_key=settings.openrouter_api_key,
                options={"referer": "https://github.com/model-router", "title": settings.app_name},
            )
        )

    if mock or "runpod" in configured:
        descriptors.append(
            ProviderDescriptor(
                name="runpod",
                kind=ProviderKind.MOCK if mock else ProviderKind.RUNPOD,
                endpoint=settings.runpod_url,
                capabilities={"all"},
                max_tokens=1000,
                priority=4,
                fallback=True,
                api_key=settings.runpod_api_key,
                options={"endpoint_id": settings.runpod_endpoint_id or "mock"},
            )
        )

    return descriptors


def load_descriptors(path: Path | str) -> list[ProviderDescriptor]:
    """Load provider descriptors from a JSON file.

    The file holds a list of descriptor objects, or an object with a
    ``providers`` list.

    Raises:
        ConfigurationError: If the file is missing or malformed.
    """
    path = Path(path)
    if not path.exists():
        raise ConfigurationError(f"Providers file not found: {path}")

    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"Providers file is not valid JSON: {path}: {e}") from e

    if isinstance(raw, dict):
        raw = raw.get("providers")
    if not isinstance(raw, list):
        raise ConfigurationError(f"Providers file must contain a list: {path}")

    try:
        return [ProviderDescriptor.model_validate(item) for item in raw]
    except ValidationError as e:
        raise ConfigurationError(f"Invalid provider descriptor in {path}: {e}") from e


def build_descriptors(settings: RouterSettings) -> list[ProviderDescriptor]:
    """Descriptors to register at startup."""
    if settings.providers_file is not None:
        descriptors = load_descriptors(settings.providers_file)
        logger.info(
            f"Loaded {len(descriptors)} providers from {settings.providers_file}"
        )
        return descriptors
    return builtin_descriptors(settings)
