"""Exception hierarchy for the model router.

Upstream errors are raised by wire adapters and always absorbed by the
dispatcher's fallback loop. Only rate limiting (a value, not an exception)
and provider exhaustion are meant to reach an external caller.
"""

from dataclasses import dataclass


class RouterError(Exception):
    """Base exception for all router errors."""


class ConfigurationError(RouterError):
    """A provider descriptor or setting is invalid.

    Raised at registration/startup time, never while serving a request.
    """


class DuplicateProviderError(RouterError):
    """A provider with the same name is already registered."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"Provider already registered: {name}")


class NotFoundError(RouterError):
    """A provider lookup by name failed."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"Provider not found: {name}")


class CharacterNotFoundError(RouterError):
    """A character id could not be resolved."""

    def __init__(self, character_id: str) -> None:
        self.character_id = character_id
        super().__init__(f"Character not found: {character_id}")


class NoHealthyProviderError(RouterError):
    """No registered provider is eligible for selection."""

    def __init__(self, message: str = "No healthy provider available") -> None:
        super().__init__(message)


class PinnedProviderUnavailableError(NoHealthyProviderError):
    """An explicitly pinned provider is unhealthy and strict pinning is on."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"Pinned provider is unhealthy: {name}")


class BatchTooLargeError(RouterError):
    """A batch request exceeds the configured size cap."""

    def __init__(self, size: int, limit: int) -> None:
        self.size = size
        self.limit = limit
        super().__init__(f"Batch size {size} exceeds the maximum of {limit}")


class UpstreamError(RouterError):
    """Transport or protocol failure talking to a single provider."""

    def __init__(
        self,
        message: str,
        provider: str,
        status_code: int | None = None,
        original_error: Exception | None = None,
    ) -> None:
        """Initialize upstream error.

        Args:
            message: Error message.
            provider: Provider name.
            status_code: HTTP status code if applicable.
            original_error: Original exception if wrapping.
        """
        super().__init__(message)
        self.provider = provider
        self.status_code = status_code
        self.original_error = original_error

    def __str__(self) -> str:
        return f"[{self.provider}] {super().__str__()}"


class UpstreamTimeoutError(UpstreamError):
    """The provider did not answer within the call timeout."""


class UpstreamProtocolError(UpstreamError):
    """The provider answered with an error status or an unreadable body."""


@dataclass(frozen=True)
class AttemptFailure:
    """One failed step of a fallback chain."""

    provider: str
    reason: str


class AllProvidersExhaustedError(RouterError):
    """Every eligible provider failed for a request.

    Attributes:
        attempts: Ordered failures, one per provider tried.
    """

    def __init__(
        self,
        attempts: list[AttemptFailure],
        reason: str | None = None,
    ) -> None:
        self.attempts = list(attempts)
        self.reason = reason
        if self.attempts:
            tried = ", ".join(a.provider for a in self.attempts)
            message = f"All providers failed (attempted: {tried})"
        else:
            message = f"No provider could be attempted: {reason or 'none eligible'}"
        super().__init__(message)

    @property
    def attempted(self) -> list[str]:
        """Provider names in the order they were tried."""
        return [a.provider for a in self.attempts]

    @property
    def last_error(self) -> str | None:
        """Reason of the final failed attempt, if any."""
        if self.attempts:
            return self.attempts[-1].reason
        return self.reason

    def to_detail(self) -> dict:
        """Structured failure detail for API responses."""
        return {
            "attempted": self.attempted,
            "last_error": self.last_error,
            "failures": [
                {"provider": a.provider, "reason": a.reason} for a in self.attempts
            ],
        }
