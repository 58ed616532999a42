"""Alpha Vantage provider."""

from __future__ import annotations

import logging
from typing import Any

from ..exceptions import RateLimitedError
from ..models import CompanyProfile, Quote, SymbolMatch
from .base import HttpQuoteProvider, to_float, to_int

logger = logging.getLogger(__name__)


class AlphaVantageProvider(HttpQuoteProvider):
    """Quotes from ``function=GLOBAL_QUOTE``.

    Alpha Vantage answers HTTP 200 for nearly everything; the failure kind is
    in the body:
      - ``Note`` / ``Information`` -> quota message (rate limited)
      - ``Error Message``          -> unknown symbol
      - empty ``Global Quote``     -> unknown symbol
    Global Quote carries no company name; the symbol is used instead.
    """

    base_url = "https://www.alphavantage.co"
    supports_search = True
    supports_profile = True

    async def _query(self, params: dict[str, Any], symbol: str | None = None) -> dict:
        data = await self._get_json(
            "/query", params={**params, "apikey": self.descriptor.api_key}, symbol=symbol
        )
        if not isinstance(data, dict):
            raise self._malformed(symbol, "body is not an object")
        if "Note" in data or "Information" in data:
            logger.debug("%s: quota message in body, marking window full", self.name)
            await self._exhaust_budget()
            raise RateLimitedError(
                f"{self.name}: {data.get('Note') or data.get('Information')}",
                provider=self.name,
                symbol=symbol,
            )
        if "Error Message" in data:
            raise self._not_found(symbol or params.get("keywords", ""))
        return data

    async def fetch_quote(self, symbol: str) -> Quote:
        data = await self._query({"function": "GLOBAL_QUOTE", "symbol": symbol}, symbol)
        return self.adapt_global_quote(data, symbol)

    def adapt_global_quote(self, data: dict, symbol: str) -> Quote:
        if "Global Quote" not in data:
            raise self._malformed(symbol, "missing 'Global Quote'")
        q = data["Global Quote"] or {}
        if not q:
            raise self._not_found(symbol)

        price = to_float(q.get("05. price"))
        if price is None or price <= 0:
            raise self._malformed(symbol, "no usable price")
        previous = to_float(q.get("08. previous close"))
        return Quote(
            symbol=symbol,
            price=round(price, 4),
            previous_close=round(previous if previous is not None else price, 4),
            provider=self.name,
            name=symbol,
            volume=to_int(q.get("06. volume")),
            day_high=to_float(q.get("03. high")),
            day_low=to_float(q.get("04. low")),
        )

    async def search(self, query: str) -> list[SymbolMatch]:
        data = await self._query({"function": "SYMBOL_SEARCH", "keywords": query})
        return [
            SymbolMatch(
                symbol=match["1. symbol"],
                name=match.get("2. name") or match["1. symbol"],
                exchange=match.get("4. region"),
            )
            for match in (data.get("bestMatches") or [])[:10]
            if match.get("1. symbol")
        ]

    async def fetch_profile(self, symbol: str) -> CompanyProfile:
        data = await self._query({"function": "OVERVIEW", "symbol": symbol}, symbol)
        sector = data.get("Sector")
        industry = data.get("Industry")
        if not (sector or industry):
            raise self._not_found(symbol)
        return CompanyProfile(symbol=symbol, sector=sector, industry=industry, provider=self.name)
