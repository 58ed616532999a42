"""Subscription registry: which symbols are watched, and by whom."""

from __future__ import annotations

import logging
from collections.abc import Callable, Hashable, Iterable

from .models import Quote

logger = logging.getLogger(__name__)

# Opaque handle tied to one client connection. Invoked synchronously with each
# pushed Quote; must not block.
QuoteCallback = Callable[[Quote], None]


class SubscriptionRegistry:
    """Maps symbols to the callbacks that want updates for them.

    A symbol is watched while at least one callback is registered for it;
    its entry is deleted when the last callback leaves. Callbacks for one
    symbol are kept in registration order. Every method is synchronous, so a
    mutation is never interleaved with another coroutine.
    """

    def __init__(self) -> None:
        # dict-as-ordered-set: preserves registration order, O(1) removal
        self._by_symbol: dict[str, dict[QuoteCallback, None]] = {}
        self._by_callback: dict[Hashable, set[str]] = {}

    def subscribe(self, symbols: Iterable[str], callback: QuoteCallback) -> None:
        """Register ``callback`` for each symbol. Idempotent."""
        symbols = list(symbols)
        if not symbols:
            return
        known = self._by_callback.setdefault(callback, set())
        for symbol in symbols:
            entry = self._by_symbol.get(symbol)
            if entry is None:
                entry = self._by_symbol[symbol] = {}
                logger.info("Now watching %s", symbol)
            entry[callback] = None
            known.add(symbol)

    def unsubscribe(self, symbols: Iterable[str], callback: QuoteCallback) -> None:
        """Remove ``callback`` from each symbol; unknown pairs are ignored."""
        known = self._by_callback.get(callback)
        for symbol in symbols:
            entry = self._by_symbol.get(symbol)
            if entry is not None:
                entry.pop(callback, None)
                if not entry:
                    del self._by_symbol[symbol]
                    logger.info("No longer watching %s", symbol)
            if known is not None:
                known.discard(symbol)
        if known is not None and not known:
            del self._by_callback[callback]

    def remove_callback(self, callback: QuoteCallback) -> None:
        """Drop ``callback`` from every symbol it was registered under.

        Used on disconnect. Safe if some or all symbols are already gone.
        """
        symbols = self._by_callback.pop(callback, set())
        for symbol in symbols:
            entry = self._by_symbol.get(symbol)
            if entry is None:
                continue
            entry.pop(callback, None)
            if not entry:
                del self._by_symbol[symbol]
                logger.info("No longer watching %s", symbol)

    def active_symbols(self) -> set[str]:
        """Every symbol with at least one registered callback."""
        return set(self._by_symbol)

    def callbacks_for(self, symbol: str) -> list[QuoteCallback]:
        """Callbacks for a symbol in registration order (a copy)."""
        return list(self._by_symbol.get(symbol, ()))

    def symbols_for(self, callback: QuoteCallback) -> set[str]:
        return set(self._by_callback.get(callback, ()))

    def __len__(self) -> int:
        return len(self._by_symbol)

    def __contains__(self, symbol: str) -> bool:
        return symbol in self._by_symbol
