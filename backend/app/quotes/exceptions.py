"""Exception hierarchy for quote acquisition."""

from typing import Any


class QuoteError(Exception):
    """Base exception for all quote subsystem errors.

    All exceptions carry an optional `context` dict for structured error
    metadata that can be logged or serialized without parsing the message.
    """

    def __init__(self, message: str, context: dict[str, Any] | None = None):
        super().__init__(message)
        self.context = context or {}


class ConfigError(QuoteError):
    """Invalid or missing configuration.

    Raised by load_settings() during startup. Should be treated as fatal.

    Context keys:
        field: str - the setting that failed validation
    """


class InvalidSymbolError(QuoteError):
    """The input is not a well-formed ticker (1-8 letters, optional .XXXX suffix).

    Raised before any provider is contacted.

    Context keys:
        symbol: str - the normalized input
    """


class ProviderError(QuoteError):
    """A single provider call failed.

    Policy: never escapes the ProviderManager except as SymbolNotFoundError.
    The manager records it against the provider's health and fails over.

    Context keys:
        provider: str - the adapter that failed
        symbol: str | None - the symbol being requested
    """

    def __init__(
        self,
        message: str,
        provider: str,
        symbol: str | None = None,
        context: dict[str, Any] | None = None,
    ):
        super().__init__(message, {"provider": provider, "symbol": symbol, **(context or {})})
        self.provider = provider
        self.symbol = symbol


class SymbolNotFoundError(ProviderError):
    """The provider answered definitively: the symbol does not exist there."""


class RateLimitedError(ProviderError):
    """The provider is temporarily refusing requests (HTTP 429 or local quota).

    Context keys:
        retry_after: float | None - seconds until the window frees up
    """


class ProviderTimeoutError(ProviderError):
    """No response within the per-call bound."""


class MalformedResponseError(ProviderError):
    """The response shape was not what the adapter expected."""


class AllProvidersExhaustedError(QuoteError):
    """Every enabled, capable provider failed for this call.

    Callers must treat this as "cannot answer right now", distinct from
    SymbolNotFoundError which means the symbol is confirmed invalid.

    Context keys:
        symbol: str - the symbol requested
        attempts: list[dict] - one {provider, error} entry per attempt
    """
