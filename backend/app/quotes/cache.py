"""Short-lived per-symbol cache of the last known-good quote."""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import replace

from .models import Quote


class QuoteCache:
    """Last known-good Quote per symbol with lazy TTL expiry.

    Writers: ProviderManager, after every successful adapter call.
    Readers: ProviderManager (cache-first lookups and the stale fallback).

    Entries are advisory. ``get`` only returns entries inside the TTL;
    ``peek`` returns whatever is stored so the manager can serve it as an
    explicitly stale fallback. Nothing is swept in the background.
    """

    def __init__(self, ttl: float = 60.0, clock: Callable[[], float] = time.time) -> None:
        self._ttl = ttl
        self._clock = clock
        self._quotes: dict[str, Quote] = {}
        self._hits = 0
        self._misses = 0

    @property
    def ttl(self) -> float:
        return self._ttl

    def put(self, symbol: str, quote: Quote) -> Quote:
        """Store a quote, stamping ``cached_at``. Returns the stored copy."""
        stored = replace(quote, cached_at=self._clock(), stale=False)
        self._quotes[symbol] = stored
        return stored

    def get(self, symbol: str) -> Quote | None:
        """Fresh entry for a symbol, or None if absent or expired."""
        quote = self._quotes.get(symbol)
        if quote is None or not self.is_fresh(quote):
            self._misses += 1
            return None
        self._hits += 1
        return quote

    def peek(self, symbol: str) -> Quote | None:
        """Stored entry regardless of age. Does not count as a hit or miss."""
        return self._quotes.get(symbol)

    def is_fresh(self, quote: Quote) -> bool:
        if quote.cached_at is None:
            return False
        return self._clock() - quote.cached_at < self._ttl

    def remove(self, symbol: str) -> None:
        self._quotes.pop(symbol, None)

    def clear(self) -> None:
        self._quotes.clear()

    def stats(self) -> dict:
        lookups = self._hits + self._misses
        return {
            "size": len(self._quotes),
            "ttl": self._ttl,
            "hits": self._hits,
            "misses": self._misses,
            "hit_rate": round(self._hits / lookups, 4) if lookups else 0.0,
        }

    def __len__(self) -> int:
        return len(self._quotes)

    def __contains__(self, symbol: str) -> bool:
        return symbol in self._quotes
