"""Financial Modeling Prep provider."""

from __future__ import annotations

import logging
from typing import Any

from ..models import CompanyProfile, Quote, SymbolMatch
from .base import HttpQuoteProvider, to_float, to_int

logger = logging.getLogger(__name__)


class FinancialModelingPrepProvider(HttpQuoteProvider):
    """Quotes from ``/api/v3/quote/{symbol}``, which returns a JSON list.

    An empty list means the symbol is unknown. The same endpoint takes a
    comma-separated list for batches. Free tier: 250 requests/day.
    """

    base_url = "https://financialmodelingprep.com"
    supports_search = True
    supports_profile = True
    supports_batch = True

    def _params(self, **extra: Any) -> dict[str, Any]:
        return {**extra, "apikey": self.descriptor.api_key}

    async def fetch_quote(self, symbol: str) -> Quote:
        data = await self._get_json(f"/api/v3/quote/{symbol}", params=self._params(), symbol=symbol)
        return self.adapt_quote(data, symbol)

    async def fetch_quotes(self, symbols: list[str]) -> dict[str, Quote]:
        data = await self._get_json(f"/api/v3/quote/{','.join(symbols)}", params=self._params())
        rows = self._rows(data, None)
        quotes: dict[str, Quote] = {}
        for row in rows:
            symbol = row.get("symbol")
            price = to_float(row.get("price"))
            if not symbol or price is None or price <= 0:
                logger.debug("%s: batch row without price for %s", self.name, symbol)
                continue
            quotes[symbol] = self._row_to_quote(row, symbol, price)
        return quotes

    def adapt_quote(self, data: Any, symbol: str) -> Quote:
        rows = self._rows(data, symbol)
        if not rows:
            raise self._not_found(symbol)
        row = rows[0]
        price = to_float(row.get("price"))
        if price is None or price <= 0:
            raise self._malformed(symbol, "no usable price")
        return self._row_to_quote(row, symbol, price)

    def _rows(self, data: Any, symbol: str | None) -> list[dict]:
        if isinstance(data, dict) and "Error Message" in data:
            # Invalid key / plan restriction rather than a missing symbol
            raise self._malformed(symbol, str(data["Error Message"]))
        if not isinstance(data, list):
            raise self._malformed(symbol, "body is not a list")
        return data

    def _row_to_quote(self, row: dict, symbol: str, price: float) -> Quote:
        previous = to_float(row.get("previousClose"))
        stamp = to_float(row.get("timestamp"))

        extra: dict[str, Any] = {}
        if stamp:
            extra["timestamp"] = stamp
        return Quote(
            symbol=symbol,
            price=round(price, 4),
            previous_close=round(previous if previous is not None else price, 4),
            provider=self.name,
            name=row.get("name") or symbol,
            exchange=row.get("exchange"),
            volume=to_int(row.get("volume")),
            day_high=to_float(row.get("dayHigh")),
            day_low=to_float(row.get("dayLow")),
            **extra,
        )

    async def search(self, query: str) -> list[SymbolMatch]:
        data = await self._get_json("/api/v3/search", params=self._params(query=query, limit=10))
        if not isinstance(data, list):
            raise self._malformed(None, "search body is not a list")
        return [
            SymbolMatch(
                symbol=item["symbol"],
                name=item.get("name") or item["symbol"],
                exchange=item.get("exchangeShortName") or item.get("stockExchange"),
            )
            for item in data[:10]
            if item.get("symbol")
        ]

    async def fetch_profile(self, symbol: str) -> CompanyProfile:
        data = await self._get_json(
            f"/api/v3/profile/{symbol}", params=self._params(), symbol=symbol
        )
        if not isinstance(data, list) or not data:
            raise self._not_found(symbol)
        row = data[0]
        if not (row.get("sector") or row.get("industry")):
            raise self._not_found(symbol)
        return CompanyProfile(
            symbol=symbol,
            sector=row.get("sector") or None,
            industry=row.get("industry") or None,
            provider=self.name,
        )
