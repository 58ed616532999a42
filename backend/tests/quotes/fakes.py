"""Scripted providers and quote builders shared by the quote tests."""

import asyncio

from app.quotes.interface import QuoteProvider
from app.quotes.models import CompanyProfile, Quote, SymbolMatch
from app.quotes.settings import ProviderDescriptor


def make_descriptor(
    name: str,
    priority: int = 1,
    timeout: float = 5.0,
    capabilities: tuple[str, ...] = ("quote", "search", "profile"),
    enabled: bool = True,
    **kwargs,
) -> ProviderDescriptor:
    return ProviderDescriptor(
        name=name,
        priority=priority,
        timeout=timeout,
        capabilities=frozenset(capabilities),
        enabled=enabled,
        **kwargs,
    )


def make_quote(symbol: str = "AAPL", price: float = 190.0, provider: str = "fake", **kwargs) -> Quote:
    kwargs.setdefault("previous_close", 188.0)
    return Quote(symbol=symbol, price=price, provider=provider, **kwargs)


class FakeProvider(QuoteProvider):
    """Scripted provider.

    ``outcome`` drives fetch_quote:
      - None        -> a quote at 100.0
      - a number    -> a quote at that price
      - a Quote     -> returned as is
      - an exception instance -> raised
      - a list      -> one entry consumed per call
    ``search_results`` and ``profile`` drive search / fetch_profile the same
    way. ``delay`` sleeps before answering.
    """

    supports_search = True
    supports_profile = True

    def __init__(
        self,
        name: str,
        priority: int = 1,
        outcome=None,
        search_results=None,
        profile=None,
        delay: float = 0.0,
        **descriptor_kwargs,
    ):
        super().__init__(make_descriptor(name, priority, **descriptor_kwargs))
        self.outcome = outcome
        self.search_results = search_results
        self.profile = profile
        self.delay = delay
        self.calls: list[tuple[str, str]] = []
        self.closed = False

    async def _resolve(self, op: str, arg: str, script):
        self.calls.append((op, arg))
        if self.delay:
            await asyncio.sleep(self.delay)
        value = script.pop(0) if isinstance(script, list) and op == "quote" else script
        if isinstance(value, BaseException):
            raise value
        return value

    def quote_calls(self) -> list[str]:
        return [arg for op, arg in self.calls if op == "quote"]

    async def fetch_quote(self, symbol: str) -> Quote:
        value = await self._resolve("quote", symbol, self.outcome)
        if value is None:
            value = 100.0
        if isinstance(value, (int, float)):
            return make_quote(symbol, price=float(value), provider=self.name)
        return value

    async def search(self, query: str) -> list[SymbolMatch]:
        value = await self._resolve("search", query, self.search_results)
        return list(value or [])

    async def fetch_profile(self, symbol: str) -> CompanyProfile:
        value = await self._resolve("profile", symbol, self.profile)
        if value is None:
            return CompanyProfile(
                symbol=symbol, sector="Technology", industry="Software", provider=self.name
            )
        return value

    async def aclose(self) -> None:
        self.closed = True


class BatchFakeProvider(FakeProvider):
    """FakeProvider that also answers fetch_quotes.

    ``prices`` maps symbol -> price for the batch endpoint; symbols missing
    from it are left out of the answer. ``batch_error`` is raised instead
    when set. Single-symbol calls still follow ``outcome``.
    """

    supports_batch = True

    def __init__(self, name: str, priority: int = 1, prices=None, batch_error=None, **kwargs):
        super().__init__(name, priority, **kwargs)
        self.prices = prices or {}
        self.batch_error = batch_error

    def batch_calls(self) -> list[list[str]]:
        return [arg.split(",") for op, arg in self.calls if op == "batch"]

    async def fetch_quotes(self, symbols: list[str]) -> dict[str, Quote]:
        self.calls.append(("batch", ",".join(symbols)))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.batch_error is not None:
            raise self.batch_error
        return {
            s: make_quote(s, price=float(self.prices[s]), provider=self.name)
            for s in symbols
            if s in self.prices
        }
