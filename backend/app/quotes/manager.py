"""Provider manager: ordered failover across quote providers."""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import replace
from typing import Any, TypeVar

from .cache import QuoteCache
from .exceptions import (
    AllProvidersExhaustedError,
    InvalidSymbolError,
    MalformedResponseError,
    ProviderError,
    ProviderTimeoutError,
    QuoteError,
    SymbolNotFoundError,
)
from .health import ProviderHealth
from .interface import QuoteProvider
from .models import CompanyProfile, Quote, SymbolMatch, ValidationResult
from .settings import CircuitSettings
from .symbols import is_valid_symbol, normalize_symbol

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Simultaneous provider calls in get_quotes when the caller sets no limit
DEFAULT_BATCH_CONCURRENCY = 5


class ProviderManager:
    """Single entry point for quotes, validation, search and profiles.

    Providers are tried strictly in priority order. A provider is attempted
    only if it is enabled, capable of the operation, and its circuit allows
    the request. The whole chain is bounded by ``total_timeout`` seconds:
    each attempt gets ``min(provider timeout, remaining budget)`` and no
    attempt starts once the budget is spent.

    Health records are updated only after an attempt has returned, in one
    synchronous step, so interleaved callers never lose updates.
    """

    def __init__(
        self,
        providers: list[QuoteProvider],
        cache: QuoteCache,
        total_timeout: float = 8.0,
        circuit: CircuitSettings | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._providers = sorted(providers, key=lambda p: p.descriptor.priority)
        self._cache = cache
        self._total_timeout = total_timeout
        self._clock = clock
        if circuit is None:
            circuit = CircuitSettings()
        self._health: dict[str, ProviderHealth] = {
            p.name: ProviderHealth(name=p.name, circuit=circuit) for p in self._providers
        }
        self._requests = 0
        self._successes = 0
        self._failures = 0
        self._last_provider_used: str | None = None

    @property
    def cache(self) -> QuoteCache:
        return self._cache

    def provider_names(self) -> list[str]:
        """Names of all configured providers in priority order."""
        return [p.name for p in self._providers]

    def health(self, name: str) -> ProviderHealth:
        return self._health[name]

    # --- Public API ---

    async def validate_symbol(self, symbol: str) -> ValidationResult:
        """Check that a symbol exists at some provider. Never raises."""
        symbol = normalize_symbol(symbol)
        if not is_valid_symbol(symbol):
            return ValidationResult(symbol=symbol, valid=False, reason="invalid_format")

        try:
            quote, provider = await self._run_chain(
                "quote", lambda p: p.fetch_quote(symbol), symbol
            )
        except AllProvidersExhaustedError as e:
            reason = "not_found" if e.context.get("not_found") else "unavailable"
            logger.info("Validation of %s failed: %s", symbol, reason)
            return ValidationResult(symbol=symbol, valid=False, reason=reason)

        self._cache.put(symbol, quote)
        return ValidationResult(
            symbol=symbol,
            valid=True,
            name=quote.name,
            price=quote.price,
            provider=provider.name,
        )

    async def get_quote(self, symbol: str, use_cache: bool = True) -> Quote:
        """Latest quote for a symbol, cache first.

        Raises:
            InvalidSymbolError: malformed input, no provider contacted.
            SymbolNotFoundError: the last attempted provider confirmed the
                symbol does not exist.
            AllProvidersExhaustedError: nobody could answer and nothing is
                cached. If an entry is cached it is returned instead, with
                ``stale=True`` when it is past the TTL.
        """
        symbol = normalize_symbol(symbol)
        if not is_valid_symbol(symbol):
            raise InvalidSymbolError(f"Malformed symbol {symbol!r}", {"symbol": symbol})

        if use_cache:
            cached = self._cache.get(symbol)
            if cached is not None:
                logger.debug("Cache hit for %s", symbol)
                return cached

        try:
            quote, _ = await self._run_chain("quote", lambda p: p.fetch_quote(symbol), symbol)
        except AllProvidersExhaustedError as e:
            if e.context.get("not_found"):
                raise SymbolNotFoundError(
                    f"{symbol} not found",
                    provider=e.context["attempts"][-1]["provider"],
                    symbol=symbol,
                ) from e
            fallback = self._cache.peek(symbol)
            if fallback is None:
                raise
            stale = not self._cache.is_fresh(fallback)
            logger.warning(
                "All providers failed for %s; serving cached quote (stale=%s)", symbol, stale
            )
            return replace(fallback, stale=stale)

        return self._cache.put(symbol, quote)

    async def refresh_quote(self, symbol: str) -> Quote:
        """Force a provider round-trip, bypassing the fresh-cache check."""
        return await self.get_quote(symbol, use_cache=False)

    async def get_quotes(
        self,
        symbols: Iterable[str],
        use_cache: bool = True,
        limit: asyncio.Semaphore | None = None,
    ) -> dict[str, Quote]:
        """Quotes for many symbols with as few provider calls as possible.

        Each symbol is resolved by the first of:
          1. a fresh cache entry (unless ``use_cache`` is False)
          2. one ``fetch_quotes`` call per batch-capable provider, in priority
             order, for whatever is still missing
          3. the single-symbol chain of ``get_quote``, which also supplies
             the stale fallback

        Malformed symbols and symbols nobody could answer are left out of
        the result. ``limit`` bounds simultaneous provider calls.
        """
        wanted: list[str] = []
        for raw in symbols:
            symbol = normalize_symbol(raw)
            if not is_valid_symbol(symbol):
                logger.debug("Ignoring malformed symbol %r in batch", raw)
            elif symbol not in wanted:
                wanted.append(symbol)
        if limit is None:
            limit = asyncio.Semaphore(DEFAULT_BATCH_CONCURRENCY)

        results: dict[str, Quote] = {}
        if use_cache:
            for symbol in wanted:
                cached = self._cache.get(symbol)
                if cached is not None:
                    results[symbol] = cached
        missing = [s for s in wanted if s not in results]

        if len(missing) > 1:
            async with limit:
                results.update(await self._run_batch(missing))
            missing = [s for s in missing if s not in results]

        async def _single(symbol: str) -> Quote:
            async with limit:
                return await self.get_quote(symbol, use_cache=False)

        outcomes = await asyncio.gather(*(_single(s) for s in missing), return_exceptions=True)
        for symbol, outcome in zip(missing, outcomes):
            if isinstance(outcome, QuoteError):
                logger.debug("No quote for %s: %s", symbol, outcome)
            elif isinstance(outcome, BaseException):
                raise outcome
            else:
                results[symbol] = outcome
        return results

    async def health_check(self, symbol: str = "AAPL") -> dict[str, bool]:
        """Ask every quote-capable provider for ``symbol`` once, concurrently.

        Outcomes are recorded in the health records exactly like live
        traffic, so a provider whose cooldown has passed gets its half-open
        trial call here even when nobody is asking for quotes. Providers whose
        circuit is still open are reported unhealthy without being called.
        Nothing is written to the cache.
        """
        symbol = normalize_symbol(symbol)

        async def _check(provider: QuoteProvider) -> bool:
            health = self._health[provider.name]
            if not health.allows_request(self._clock()):
                return False
            _, error = await self._attempt(
                provider, provider.fetch_quote(symbol), provider.descriptor.timeout, symbol
            )
            return error is None or isinstance(error, SymbolNotFoundError)

        candidates = self._candidates("quote")
        checks = await asyncio.gather(*(_check(p) for p in candidates))
        report = {p.name: ok for p, ok in zip(candidates, checks)}
        logger.info(
            "Provider health check: %d/%d healthy %s",
            sum(checks),
            len(checks),
            report,
        )
        return report

    def clear_cache(self) -> None:
        """Drop every cached quote. The next lookups go to the providers."""
        self._cache.clear()
        logger.info("Quote cache cleared")

    async def search_symbols(self, query: str) -> list[SymbolMatch]:
        """First non-empty result set from search-capable providers, or []."""
        query = query.strip()
        if not query:
            return []

        async def _search(provider: QuoteProvider) -> list[SymbolMatch]:
            matches = await provider.search(query)
            if not matches:
                raise SymbolNotFoundError(
                    f"{provider.name}: no matches for {query!r}", provider=provider.name
                )
            return matches

        try:
            matches, provider = await self._run_chain("search", _search, query)
        except AllProvidersExhaustedError:
            return []
        logger.debug("Search %r answered by %s: %d results", query, provider.name, len(matches))
        return matches

    async def fetch_company_profile(self, symbol: str) -> CompanyProfile | None:
        """Sector/industry from the first profile-capable provider that has it.

        Best-effort enrichment: returns None instead of raising.
        """
        symbol = normalize_symbol(symbol)
        if not is_valid_symbol(symbol):
            return None
        try:
            profile, _ = await self._run_chain(
                "profile", lambda p: p.fetch_profile(symbol), symbol
            )
        except AllProvidersExhaustedError:
            return None
        return profile

    def get_provider_stats(self) -> dict[str, Any]:
        """Snapshot of provider health, manager totals and cache stats."""
        now = self._clock()
        providers = {}
        for provider in self._providers:
            entry = self._health[provider.name].to_dict(now)
            entry.update(
                {
                    "priority": provider.descriptor.priority,
                    "enabled": provider.descriptor.enabled,
                    "capabilities": sorted(provider.descriptor.capabilities),
                    "rate_limit_remaining": getattr(provider, "rate_limit_remaining", None),
                }
            )
            providers[provider.name] = entry

        return {
            "total_requests": self._requests,
            "successful_requests": self._successes,
            "failed_requests": self._failures,
            "success_rate": round(self._successes / self._requests * 100, 1)
            if self._requests
            else 0.0,
            "last_provider_used": self._last_provider_used,
            "providers": providers,
            "cache": self._cache.stats(),
        }

    async def aclose(self) -> None:
        for provider in self._providers:
            await provider.aclose()

    # --- Internal ---

    def _candidates(self, capability: str) -> list[QuoteProvider]:
        return [p for p in self._providers if p.descriptor.enabled and p.can(capability)]

    async def _attempt(
        self,
        provider: QuoteProvider,
        call: Awaitable[T],
        timeout: float,
        subject: str,
    ) -> tuple[T | None, ProviderError | None]:
        """Await one adapter call and record its outcome.

        Returns ``(result, None)`` or ``(None, error)``. The health record is
        updated after the call has returned, in one synchronous step.
        """
        loop = asyncio.get_running_loop()
        health = self._health[provider.name]
        started = loop.time()
        error: ProviderError
        try:
            result = await asyncio.wait_for(call, timeout=timeout)
        except asyncio.TimeoutError:
            error = ProviderTimeoutError(
                f"{provider.name}: no response within budget",
                provider=provider.name,
                symbol=subject,
            )
        except ProviderError as e:
            error = e
        except (KeyError, IndexError, TypeError, ValueError, AttributeError) as e:
            error = MalformedResponseError(
                f"{provider.name}: could not map response: {e!r}",
                provider=provider.name,
                symbol=subject,
            )
        else:
            health.record_success((loop.time() - started) * 1000, self._clock())
            return result, None

        latency_ms = (loop.time() - started) * 1000
        if isinstance(error, SymbolNotFoundError):
            health.record_not_found(latency_ms, self._clock())
            logger.debug("%s has no data for %s", provider.name, subject)
        else:
            health.record_failure(str(error), latency_ms, self._clock())
            logger.warning("%s failed for %s: %s", provider.name, subject, error)
        return None, error

    async def _run_chain(
        self,
        capability: str,
        call: Callable[[QuoteProvider], Awaitable[T]],
        subject: str,
    ) -> tuple[T, QuoteProvider]:
        """Try capable providers in order until one answers.

        Raises AllProvidersExhaustedError with ``attempts`` and ``not_found``
        (True when the last attempted provider said the subject does not
        exist and no candidate was cut off by the deadline) in its context.
        """
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self._total_timeout
        candidates = self._candidates(capability)
        attempts: list[dict[str, str]] = []
        last_not_found = False
        self._requests += 1

        for index, provider in enumerate(candidates):
            remaining = deadline - loop.time()
            if remaining <= 0:
                logger.warning(
                    "Deadline of %.1fs spent for %s; %d provider(s) not tried",
                    self._total_timeout,
                    subject,
                    len(candidates) - index,
                )
                last_not_found = False
                break

            if not self._health[provider.name].allows_request(self._clock()):
                logger.debug("Skipping %s for %s: circuit open", provider.name, subject)
                continue

            result, error = await self._attempt(
                provider, call(provider), min(provider.descriptor.timeout, remaining), subject
            )
            if error is None:
                self._successes += 1
                self._last_provider_used = provider.name
                return result, provider

            attempts.append({"provider": provider.name, "error": type(error).__name__})
            last_not_found = isinstance(error, SymbolNotFoundError)

        self._failures += 1
        raise AllProvidersExhaustedError(
            f"No provider could answer {capability} for {subject!r}",
            {"symbol": subject, "attempts": attempts, "not_found": last_not_found},
        )

    async def _run_batch(self, symbols: list[str]) -> dict[str, Quote]:
        """One ``fetch_quotes`` call per batch-capable provider, in order.

        Symbols a provider leaves out carry on to the next one. Bounded by
        the same aggregate deadline as a single-symbol chain. Every quote
        found is written to the cache.
        """
        candidates = self._candidates("batch")
        if not candidates:
            return {}

        loop = asyncio.get_running_loop()
        deadline = loop.time() + self._total_timeout
        subject = ",".join(symbols)
        found: dict[str, Quote] = {}
        self._requests += 1

        for provider in candidates:
            missing = [s for s in symbols if s not in found]
            if not missing:
                break
            remaining = deadline - loop.time()
            if remaining <= 0:
                logger.warning(
                    "Deadline of %.1fs spent on batch; %d symbol(s) left",
                    self._total_timeout,
                    len(missing),
                )
                break
            if not self._health[provider.name].allows_request(self._clock()):
                logger.debug("Skipping %s for batch: circuit open", provider.name)
                continue

            quotes, error = await self._attempt(
                provider,
                provider.fetch_quotes(missing),
                min(provider.descriptor.timeout, remaining),
                subject,
            )
            if error is not None:
                continue
            self._last_provider_used = provider.name
            for symbol in missing:
                if symbol in quotes:
                    found[symbol] = self._cache.put(symbol, quotes[symbol])
            logger.debug(
                "%s answered %d/%d symbols in one batch", provider.name, len(quotes), len(missing)
            )

        if found:
            self._successes += 1
        else:
            self._failures += 1
        return found
