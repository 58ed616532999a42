"""Polling scheduler: refreshes watched symbols and pushes price changes."""

from __future__ import annotations

import asyncio
import logging

from .manager import ProviderManager
from .models import Quote
from .registry import SubscriptionRegistry

logger = logging.getLogger(__name__)


class PollingScheduler:
    """Recurring tick that fetches every watched symbol through the manager.

    Each tick:
      1. reads ``registry.active_symbols()`` and forgets symbols nobody
         watches any more (so a later re-subscribe gets a fresh first push)
      2. skips symbols whose fetch from an earlier tick is still in flight
      3. fetches the rest with one ``ProviderManager.get_quotes`` call, which
         batches where a provider allows it; at most ``max_in_flight``
         provider calls run at once
      4. on a price change (or first observation), calls every callback
         registered for the symbol, in registration order

    Ticks fire every ``poll_interval`` seconds whether or not the previous
    one has finished. Fetch failures and stale fallbacks produce no push;
    repeated failures show up only in ``ProviderManager.get_provider_stats``.

    When ``health_check_interval`` is positive a second loop runs
    ``ProviderManager.health_check`` on that period.
    """

    def __init__(
        self,
        manager: ProviderManager,
        registry: SubscriptionRegistry,
        poll_interval: float = 10.0,
        max_in_flight: int = 4,
        health_check_interval: float = 0.0,
        health_check_symbol: str = "AAPL",
    ) -> None:
        self._manager = manager
        self._registry = registry
        self._interval = poll_interval
        self._semaphore = asyncio.Semaphore(max_in_flight)
        self._health_interval = health_check_interval
        self._health_symbol = health_check_symbol
        self._in_flight: dict[str, asyncio.Task] = {}
        self._last_price: dict[str, float] = {}
        self._ticks: set[asyncio.Task] = set()
        self._task: asyncio.Task | None = None
        self._health_task: asyncio.Task | None = None

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def in_flight(self) -> set[str]:
        """Symbols with a fetch currently outstanding."""
        return set(self._in_flight)

    async def start(self) -> None:
        """Start the recurring loops. No-op if already running."""
        if self.is_running:
            return
        self._task = asyncio.create_task(self._poll_loop(), name="quote-poller")
        if self._health_interval > 0:
            self._health_task = asyncio.create_task(self._health_loop(), name="provider-health")
        logger.info(
            "Quote poller started: %.1fs interval, health checks every %.0fs",
            self._interval,
            self._health_interval,
        )

    async def stop(self) -> None:
        """Cancel the loops and any outstanding fetches. Safe to call twice."""
        pending = [
            t
            for t in (self._task, self._health_task, *self._ticks, *self._in_flight.values())
            if t
        ]
        for task in pending:
            if not task.done():
                task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
        self._task = None
        self._health_task = None
        self._ticks.clear()
        self._in_flight.clear()
        logger.info("Quote poller stopped")

    async def poll_once(self) -> int:
        """Run one tick and wait for its fetches. Returns the number of pushes."""
        symbols = self._registry.active_symbols()
        for gone in set(self._last_price) - symbols:
            del self._last_price[gone]

        due: list[str] = []
        for symbol in sorted(symbols):
            if symbol in self._in_flight:
                logger.debug("Skipping %s: previous fetch still in flight", symbol)
                continue
            due.append(symbol)
        if not due:
            return 0

        task = asyncio.create_task(self._fetch(due), name="quote-fetch")
        for symbol in due:
            self._in_flight[symbol] = task
        task.add_done_callback(lambda t, batch=tuple(due): self._release(batch, t))

        pushed = await task
        logger.debug("Tick: fetched %d symbols, pushed %d updates", len(due), pushed)
        return pushed

    # --- Internal ---

    async def _poll_loop(self) -> None:
        while True:
            tick = asyncio.create_task(self.poll_once(), name="quote-tick")
            self._ticks.add(tick)
            tick.add_done_callback(self._tick_done)
            await asyncio.sleep(self._interval)

    def _tick_done(self, tick: asyncio.Task) -> None:
        self._ticks.discard(tick)
        if not tick.cancelled() and tick.exception() is not None:
            logger.error("Quote tick failed", exc_info=tick.exception())

    async def _health_loop(self) -> None:
        while True:
            await asyncio.sleep(self._health_interval)
            await self._manager.health_check(self._health_symbol)

    def _release(self, symbols: tuple[str, ...], task: asyncio.Task) -> None:
        for symbol in symbols:
            if self._in_flight.get(symbol) is task:
                del self._in_flight[symbol]

    async def _fetch(self, symbols: list[str]) -> int:
        quotes = await self._manager.get_quotes(symbols, limit=self._semaphore)
        pushed = 0
        for symbol in symbols:
            quote = quotes.get(symbol)
            if quote is None or quote.stale or symbol not in self._registry:
                continue
            if self._last_price.get(symbol) == quote.price:
                continue
            self._last_price[symbol] = quote.price
            self._deliver(symbol, quote)
            pushed += 1
        return pushed

    def _deliver(self, symbol: str, quote: Quote) -> None:
        for callback in self._registry.callbacks_for(symbol):
            try:
                callback(quote)
            except Exception:
                logger.exception("Quote callback failed for %s", symbol)
