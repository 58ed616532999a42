"""Data models for quote acquisition."""

from __future__ import annotations

import time
from dataclasses import dataclass, field


@dataclass(frozen=True, slots=True)
class Quote:
    """Immutable canonical quote for one symbol at a point in time.

    A new observation always produces a new Quote. The cache and the
    provider manager derive tagged copies (``cached_at``, ``stale``) with
    ``dataclasses.replace`` rather than mutating.
    """

    symbol: str
    price: float
    previous_close: float
    provider: str
    name: str | None = None
    currency: str | None = None
    exchange: str | None = None
    market_state: str | None = None  # 'PRE', 'REGULAR', 'POST', 'CLOSED'
    volume: int | None = None
    day_high: float | None = None
    day_low: float | None = None
    timestamp: float = field(default_factory=time.time)  # Unix seconds
    cached_at: float | None = None
    stale: bool = False

    @property
    def change(self) -> float:
        """Absolute change from the previous close."""
        return round(self.price - self.previous_close, 4)

    @property
    def change_percent(self) -> float:
        """Percentage change from the previous close."""
        if self.previous_close == 0:
            return 0.0
        return round((self.price - self.previous_close) / self.previous_close * 100, 4)

    @property
    def direction(self) -> str:
        """'up', 'down', or 'flat'."""
        if self.price > self.previous_close:
            return "up"
        elif self.price < self.previous_close:
            return "down"
        return "flat"

    def to_dict(self) -> dict:
        """Serialize for JSON / WebSocket transmission."""
        return {
            "symbol": self.symbol,
            "name": self.name,
            "price": self.price,
            "previous_close": self.previous_close,
            "change": self.change,
            "change_percent": self.change_percent,
            "direction": self.direction,
            "currency": self.currency,
            "exchange": self.exchange,
            "market_state": self.market_state,
            "volume": self.volume,
            "day_high": self.day_high,
            "day_low": self.day_low,
            "timestamp": self.timestamp,
            "provider": self.provider,
            "cached_at": self.cached_at,
            "stale": self.stale,
        }


@dataclass(frozen=True, slots=True)
class SymbolMatch:
    """One row of a symbol search result."""

    symbol: str
    name: str
    exchange: str | None = None

    def to_dict(self) -> dict:
        return {"symbol": self.symbol, "name": self.name, "exchange": self.exchange}


@dataclass(frozen=True, slots=True)
class CompanyProfile:
    """Sector/industry enrichment for a symbol."""

    symbol: str
    sector: str | None
    industry: str | None
    provider: str

    def to_dict(self) -> dict:
        return {
            "symbol": self.symbol,
            "sector": self.sector,
            "industry": self.industry,
            "provider": self.provider,
        }


@dataclass(frozen=True, slots=True)
class ValidationResult:
    """Outcome of ``ProviderManager.validate_symbol``.

    ``reason`` is set only when ``valid`` is False:
      - 'not_found'      - the symbol is confirmed not to exist
      - 'unavailable'    - no provider could answer right now
      - 'invalid_format' - the input is not a well-formed ticker
    """

    symbol: str
    valid: bool
    name: str | None = None
    price: float | None = None
    provider: str | None = None
    reason: str | None = None

    def to_dict(self) -> dict:
        return {
            "symbol": self.symbol,
            "valid": self.valid,
            "name": self.name,
            "price": self.price,
            "provider": self.provider,
            "reason": self.reason,
        }
