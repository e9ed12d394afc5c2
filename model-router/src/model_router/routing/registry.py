"""Provider registry.

Holds the configured provider descriptors in registration order. The
order is significant: it is the final tie-breaker during selection.
"""

from typing import Iterable, Iterator, Mapping

from model_router.errors import ConfigurationError, DuplicateProviderError, NotFoundError
from model_router.providers.base import ProviderAdapter
from model_router.providers.models import ProviderDescriptor, ProviderKind
from shared.logging import get_logger

logger = get_logger(__name__)


class ProviderRegistry:
    """Ordered collection of provider descriptors.

    Each descriptor is validated by the adapter for its kind when it is
    registered, so configuration mistakes surface at startup.
    """

    def __init__(
        self,
        adapters: Mapping[ProviderKind, ProviderAdapter],
        descriptors: Iterable[ProviderDescriptor] = (),
    ) -> None:
        """Initialize the registry.

        Args:
            adapters: Adapter table used to validate descriptors.
            descriptors: Descriptors to register immediately.
        """
        self._adapters = adapters
        self._providers: dict[str, ProviderDescriptor] = {}
        for descriptor in descriptors:
            self.register(descriptor)

    def register(self, descriptor: ProviderDescriptor) -> None:
        """Add a provider.

        Args:
            descriptor: Provider to add.

        Raises:
            DuplicateProviderError: If the name is already taken.
            ConfigurationError: If no adapter accepts the descriptor.
        """
        if descriptor.name in self._providers:
            raise DuplicateProviderError(descriptor.name)

        adapter = self._adapters.get(descriptor.kind)
        if adapter is None:
            raise ConfigurationError(
                f"No adapter for provider kind '{descriptor.kind.value}' "
                f"(provider '{descriptor.name}')"
            )
        adapter.validate(descriptor)

        self._providers[descriptor.name] = descriptor
        logger.info(
            f"Registered provider {descriptor.name}",
            extra={
                "provider": descriptor.name,
                "kind": descriptor.kind.value,
                "priority": descriptor.priority,
                "fallback": descriptor.fallback,
            },
        )

    def get(self, name: str) -> ProviderDescriptor:
        """Look up a provider by name.

        Raises:
            NotFoundError: If no provider has that name.
        """
        try:
            return self._providers[name]
        except KeyError:
            raise NotFoundError(name) from None

    def list_providers(self) -> list[ProviderDescriptor]:
        """All providers in registration order."""
        return list(self._providers.values())

    def healthy(self) -> list[ProviderDescriptor]:
        return [p for p in self._providers.values() if p.is_healthy]

    def __contains__(self, name: object) -> bool:
        return name in self._providers

    def __len__(self) -> int:
        return len(self._providers)

    def __iter__(self) -> Iterator[ProviderDescriptor]:
        return iter(list(self._providers.values()))
