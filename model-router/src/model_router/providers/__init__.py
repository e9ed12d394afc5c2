"""Provider descriptors and wire adapters."""

from model_router.providers.base import ParsedResponse, ProviderAdapter
from model_router.providers.models import (
    AUTO,
    Automatic,
    GenerationRequest,
    GenerationResult,
    HealthState,
    Pinned,
    ProviderDescriptor,
    ProviderKind,
    ProviderSelection,
    parse_selection,
)
from model_router.providers.completions import CompletionsAdapter
from model_router.providers.chat_completions import ChatCompletionsAdapter
from model_router.providers.runpod import RunPodAdapter
from model_router.providers.mock import MockAdapter
from model_router.providers.factory import (
    AdapterTable,
    build_adapters,
    build_descriptors,
    builtin_descriptors,
    load_descriptors,
)

__all__ = [
    # Base
    "ProviderAdapter",
    "ParsedResponse",
    # Models
    "AUTO",
    "Automatic",
    "GenerationRequest",
    "GenerationResult",
    "HealthState",
    "Pinned",
    "ProviderDescriptor",
    "ProviderKind",
    "ProviderSelection",
    "parse_selection",
    # Adapters
    "CompletionsAdapter",
    "ChatCompletionsAdapter",
    "RunPodAdapter",
    "MockAdapter",
    # Factory
    "AdapterTable",
    "build_adapters",
    "build_descriptors",
    "builtin_descriptors",
    "load_descriptors",
]
