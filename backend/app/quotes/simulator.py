"""GBM-based price simulator backing the demo provider."""

from __future__ import annotations

import logging
import math

import numpy as np

from .seed_prices import (
    CROSS_SECTOR_CORR,
    DEFAULT_MU,
    DEFAULT_SIGMA,
    SAME_SECTOR_CORR,
    SECTOR_SIGMA,
    SEED_UNIVERSE,
)

logger = logging.getLogger(__name__)


def synthetic_seed_price(symbol: str) -> float:
    """Deterministic starting price for symbols outside the seed universe.

    Shorter tickers land in a higher band (50-500) than longer ones (10-200).
    """
    low, high = (50, 500) if len(symbol) <= 3 else (10, 200)
    code = sum(ord(c) for c in symbol)
    return round(float(low + code % (high - low)), 2)


class GBMSimulator:
    """Geometric Brownian Motion simulator for correlated stock prices.

    Math:
        S(t+dt) = S(t) * exp((mu - sigma^2/2) * dt + sigma * sqrt(dt) * Z)

    Unlike a fixed-rate ticker, the simulator is advanced by wall-clock
    elapsed time, so a quote requested every 10s moves as much as ten
    one-second steps would.
    """

    # 252 trading days * 6.5 hours/day * 3600 seconds/hour
    TRADING_SECONDS_PER_YEAR = 252 * 6.5 * 3600

    def __init__(
        self,
        symbols: list[str] | None = None,
        event_probability: float = 0.001,
        seed: int | None = None,
    ) -> None:
        self._event_prob = event_probability
        self._rng = np.random.default_rng(seed)

        self._symbols: list[str] = []
        self._prices: dict[str, float] = {}
        self._opening: dict[str, float] = {}
        self._sectors: dict[str, str | None] = {}
        self._cholesky: np.ndarray | None = None

        for symbol in symbols or []:
            self._add_internal(symbol)
        self._rebuild_cholesky()

    @property
    def symbols(self) -> list[str]:
        return list(self._symbols)

    def add_symbol(self, symbol: str) -> None:
        """Start simulating a symbol. No-op if already present."""
        if symbol in self._prices:
            return
        self._add_internal(symbol)
        self._rebuild_cholesky()

    def remove_symbol(self, symbol: str) -> None:
        if symbol not in self._prices:
            return
        self._symbols.remove(symbol)
        del self._prices[symbol]
        del self._opening[symbol]
        del self._sectors[symbol]
        self._rebuild_cholesky()

    def get_price(self, symbol: str) -> float | None:
        return self._prices.get(symbol)

    def opening_price(self, symbol: str) -> float | None:
        """Price when the symbol entered the simulation (acts as previous close)."""
        return self._opening.get(symbol)

    def describe(self, symbol: str) -> tuple[str, str | None]:
        """(company name, sector) for a symbol."""
        if symbol in SEED_UNIVERSE:
            name, sector, _ = SEED_UNIVERSE[symbol]
            return name, sector
        return f"{symbol} Corporation", None

    def advance(self, elapsed: float) -> dict[str, float]:
        """Move every symbol forward by ``elapsed`` wall-clock seconds."""
        n = len(self._symbols)
        if n == 0 or elapsed <= 0:
            return {s: round(p, 2) for s, p in self._prices.items()}

        dt = elapsed / self.TRADING_SECONDS_PER_YEAR
        z = self._rng.standard_normal(n)
        if self._cholesky is not None:
            z = self._cholesky @ z

        for i, symbol in enumerate(self._symbols):
            sigma = SECTOR_SIGMA.get(self._sectors[symbol] or "", DEFAULT_SIGMA)
            drift = (DEFAULT_MU - 0.5 * sigma**2) * dt
            diffusion = sigma * math.sqrt(dt) * z[i]
            self._prices[symbol] *= math.exp(drift + diffusion)

            if self._rng.random() < self._event_prob:
                shock = self._rng.uniform(0.02, 0.05) * self._rng.choice([-1, 1])
                self._prices[symbol] *= 1 + shock
                logger.debug("Simulated event on %s: %+.1f%%", symbol, shock * 100)

        return {s: round(p, 2) for s, p in self._prices.items()}

    def _add_internal(self, symbol: str) -> None:
        if symbol in SEED_UNIVERSE:
            _, sector, price = SEED_UNIVERSE[symbol]
        else:
            sector, price = None, synthetic_seed_price(symbol)
        self._symbols.append(symbol)
        self._prices[symbol] = price
        self._opening[symbol] = price
        self._sectors[symbol] = sector

    def _rebuild_cholesky(self) -> None:
        """Rebuild the Cholesky factor of the sector correlation matrix."""
        n = len(self._symbols)
        if n <= 1:
            self._cholesky = None
            return

        corr = np.eye(n)
        for i in range(n):
            for j in range(i + 1, n):
                rho = self._pairwise_correlation(
                    self._sectors[self._symbols[i]], self._sectors[self._symbols[j]]
                )
                corr[i, j] = rho
                corr[j, i] = rho
        self._cholesky = np.linalg.cholesky(corr)

    @staticmethod
    def _pairwise_correlation(s1: str | None, s2: str | None) -> float:
        if s1 is not None and s1 == s2:
            return SAME_SECTOR_CORR
        return CROSS_SECTOR_CORR
