"""Abstract interface for quote providers."""

from __future__ import annotations

from abc import ABC, abstractmethod

from .models import CompanyProfile, Quote, SymbolMatch
from .settings import ProviderDescriptor


class QuoteProvider(ABC):
    """Contract for one external quote source (the adapter).

    An adapter builds the provider-specific request, applies that provider's
    timeout, and maps the response (or the absence of data) into a canonical
    Quote or a typed ProviderError. It never retries: failover and health
    tracking belong to the ProviderManager.

    Lifecycle:
        provider = YahooFinanceProvider(descriptor)
        quote = await provider.fetch_quote("AAPL")
        # ... app runs ...
        await provider.aclose()
    """

    supports_search: bool = False
    supports_profile: bool = False
    supports_batch: bool = False

    def __init__(self, descriptor: ProviderDescriptor) -> None:
        self.descriptor = descriptor

    @property
    def name(self) -> str:
        return self.descriptor.name

    def can(self, capability: str) -> bool:
        """True if both the adapter and its configuration allow ``capability``."""
        if capability == "batch":
            # Batch quotes ride on the "quote" grant
            return self.supports_batch and self.descriptor.supports("quote")
        if not self.descriptor.supports(capability):
            return False
        if capability == "search":
            return self.supports_search
        if capability == "profile":
            return self.supports_profile
        return True

    @abstractmethod
    async def fetch_quote(self, symbol: str) -> Quote:
        """Fetch the latest quote for a normalized symbol.

        Raises SymbolNotFoundError, RateLimitedError, ProviderTimeoutError
        or MalformedResponseError.
        """

    async def fetch_quotes(self, symbols: list[str]) -> dict[str, Quote]:
        """Quotes for several normalized symbols in one request.

        Only called when ``supports_batch``. Symbols the provider has no data
        for are left out of the result; a failure of the whole request raises
        a ProviderError like fetch_quote.
        """
        raise NotImplementedError(f"{self.name} does not support batch quotes")

    async def search(self, query: str) -> list[SymbolMatch]:
        """Search symbols by free text. Only called when ``supports_search``."""
        raise NotImplementedError(f"{self.name} does not support search")

    async def fetch_profile(self, symbol: str) -> CompanyProfile:
        """Fetch sector/industry. Only called when ``supports_profile``.

        Raises SymbolNotFoundError when the provider has no profile data.
        """
        raise NotImplementedError(f"{self.name} does not support profiles")

    async def aclose(self) -> None:
        """Release network resources. Safe to call multiple times."""
