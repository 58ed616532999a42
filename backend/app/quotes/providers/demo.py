"""Demo provider: simulated quotes for running without any API keys."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable

from ..interface import QuoteProvider
from ..models import Quote, SymbolMatch
from ..seed_prices import SEED_UNIVERSE
from ..settings import ProviderDescriptor
from ..simulator import GBMSimulator

logger = logging.getLogger(__name__)


class DemoQuoteProvider(QuoteProvider):
    """QuoteProvider backed by the GBM simulator.

    Every well-formed symbol "exists": unknown tickers get a deterministic
    synthetic seed price. The previous close is the price at which the symbol
    entered the simulation.

    The simulated set is bounded. A symbol nobody has asked about for
    ``idle_ttl`` seconds leaves the simulation, and when ``max_symbols`` are
    already simulated the least recently asked-about one makes room. A symbol
    that comes back restarts from its seed price.
    """

    supports_search = True
    supports_batch = True

    def __init__(
        self,
        descriptor: ProviderDescriptor,
        simulator: GBMSimulator | None = None,
        clock: Callable[[], float] = time.time,
        idle_ttl: float = 900.0,
        max_symbols: int = 64,
    ) -> None:
        super().__init__(descriptor)
        self._sim = simulator if simulator is not None else GBMSimulator()
        self._clock = clock
        self._idle_ttl = idle_ttl
        self._max_symbols = max_symbols
        self._last_seen: dict[str, float] = {}
        self._last_advance = clock()

    @property
    def simulated_symbols(self) -> list[str]:
        return self._sim.symbols

    async def fetch_quote(self, symbol: str) -> Quote:
        now = self._clock()
        self._track(symbol, now)
        self._sim.advance(now - self._last_advance)
        self._last_advance = now
        return self._quote(symbol, now)

    async def fetch_quotes(self, symbols: list[str]) -> dict[str, Quote]:
        now = self._clock()
        for symbol in symbols:
            self._track(symbol, now)
        self._sim.advance(now - self._last_advance)
        self._last_advance = now
        # A batch larger than max_symbols evicts its own head
        return {s: self._quote(s, now) for s in symbols if self._sim.get_price(s) is not None}

    async def search(self, query: str) -> list[SymbolMatch]:
        needle = query.strip().lower()
        if not needle:
            return []
        return [
            SymbolMatch(symbol=symbol, name=name)
            for symbol, (name, _, _) in SEED_UNIVERSE.items()
            if symbol.lower().startswith(needle) or needle in name.lower()
        ][:10]

    # --- Internal ---

    def _track(self, symbol: str, now: float) -> None:
        """Mark ``symbol`` as asked about, evicting idle or surplus symbols."""
        for other, seen in list(self._last_seen.items()):
            if other != symbol and now - seen > self._idle_ttl:
                self._forget(other, "idle")

        if symbol not in self._last_seen:
            while len(self._last_seen) >= self._max_symbols:
                oldest = min(self._last_seen, key=self._last_seen.__getitem__)
                self._forget(oldest, "capacity")
            if symbol not in self._sim.symbols:
                logger.debug("Demo: adding %s to simulation", symbol)
            self._sim.add_symbol(symbol)
        self._last_seen[symbol] = now

    def _forget(self, symbol: str, why: str) -> None:
        logger.debug("Demo: dropping %s from simulation (%s)", symbol, why)
        del self._last_seen[symbol]
        self._sim.remove_symbol(symbol)

    def _quote(self, symbol: str, now: float) -> Quote:
        name, _ = self._sim.describe(symbol)
        return Quote(
            symbol=symbol,
            price=round(self._sim.get_price(symbol), 2),
            previous_close=round(self._sim.opening_price(symbol), 2),
            provider=self.name,
            name=name,
            currency="USD",
            market_state="REGULAR",
            timestamp=now,
        )
