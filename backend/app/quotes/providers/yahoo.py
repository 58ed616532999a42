"""Yahoo Finance provider - unauthenticated chart/search endpoints via httpx."""

from __future__ import annotations

import logging
from typing import Any

from ..models import CompanyProfile, Quote, SymbolMatch
from .base import HttpQuoteProvider, to_float, to_int

logger = logging.getLogger(__name__)

_SEARCHABLE_TYPES = {"EQUITY", "ETF"}


class YahooFinanceProvider(HttpQuoteProvider):
    """Quotes from ``/v8/finance/chart/{symbol}``; no API key required.

    The chart ``meta`` block carries everything the canonical Quote needs.
    Batches go through ``/v7/finance/quote?symbols=``. Search uses
    ``/v1/finance/search`` and profiles ``/v10/finance/quoteSummary`` with the
    ``assetProfile`` module.
    """

    base_url = "https://query1.finance.yahoo.com"
    supports_search = True
    supports_profile = True
    supports_batch = True

    async def fetch_quote(self, symbol: str) -> Quote:
        data = await self._get_json(
            f"/v8/finance/chart/{symbol}",
            params={"interval": "1d", "range": "1d"},
            symbol=symbol,
        )
        return self.adapt_chart(data, symbol)

    def adapt_chart(self, data: Any, symbol: str) -> Quote:
        """Map a chart response to a Quote."""
        if not isinstance(data, dict) or "chart" not in data:
            raise self._malformed(symbol, "missing 'chart'")
        chart = data["chart"] or {}
        error = chart.get("error")
        results = chart.get("result") or []
        if error or not results:
            raise self._not_found(symbol)

        result = results[0]
        meta = result.get("meta") or {}
        price = to_float(meta.get("regularMarketPrice"))
        if price is None:
            logger.debug("%s: no regularMarketPrice for %s, using last close", self.name, symbol)
            closes = ((result.get("indicators") or {}).get("quote") or [{}])[0].get("close") or []
            closes = [c for c in closes if c is not None]
            price = to_float(closes[-1]) if closes else None
        if price is None or price <= 0:
            raise self._malformed(symbol, "no usable price")

        previous = to_float(meta.get("previousClose")) or to_float(meta.get("chartPreviousClose"))
        market_time = to_float(meta.get("regularMarketTime"))

        extra: dict[str, Any] = {}
        if market_time:
            extra["timestamp"] = market_time
        return Quote(
            symbol=symbol,
            price=round(price, 4),
            previous_close=round(previous if previous is not None else price, 4),
            provider=self.name,
            name=meta.get("longName") or meta.get("shortName") or symbol,
            currency=meta.get("currency"),
            exchange=meta.get("exchangeName") or meta.get("fullExchangeName"),
            market_state=meta.get("marketState"),
            volume=to_int(meta.get("regularMarketVolume")),
            day_high=to_float(meta.get("regularMarketDayHigh")),
            day_low=to_float(meta.get("regularMarketDayLow")),
            **extra,
        )

    async def fetch_quotes(self, symbols: list[str]) -> dict[str, Quote]:
        data = await self._get_json(
            "/v7/finance/quote",
            params={"symbols": ",".join(symbols), "formatted": "false"},
        )
        return self.adapt_batch(data)

    def adapt_batch(self, data: Any) -> dict[str, Quote]:
        """Map a ``/v7/finance/quote`` response to Quotes keyed by symbol.

        Rows without a usable price are dropped so the symbol falls through
        to the next provider.
        """
        if not isinstance(data, dict) or "quoteResponse" not in data:
            raise self._malformed(None, "missing 'quoteResponse'")
        quotes: dict[str, Quote] = {}
        for row in (data["quoteResponse"] or {}).get("result") or []:
            symbol = row.get("symbol")
            price = to_float(row.get("regularMarketPrice"))
            if not symbol or price is None or price <= 0:
                logger.debug("%s: batch row without price for %s", self.name, symbol)
                continue
            previous = to_float(row.get("regularMarketPreviousClose")) or to_float(
                row.get("previousClose")
            )
            market_time = to_float(row.get("regularMarketTime"))

            extra: dict[str, Any] = {}
            if market_time:
                extra["timestamp"] = market_time
            quotes[symbol] = Quote(
                symbol=symbol,
                price=round(price, 4),
                previous_close=round(previous if previous is not None else price, 4),
                provider=self.name,
                name=row.get("longName") or row.get("shortName") or symbol,
                currency=row.get("currency"),
                exchange=row.get("fullExchangeName") or row.get("exchange"),
                market_state=row.get("marketState"),
                volume=to_int(row.get("regularMarketVolume")),
                day_high=to_float(row.get("regularMarketDayHigh")),
                day_low=to_float(row.get("regularMarketDayLow")),
                **extra,
            )
        return quotes

    async def search(self, query: str) -> list[SymbolMatch]:
        data = await self._get_json(
            "/v1/finance/search",
            params={"q": query, "quotesCount": 10, "newsCount": 0},
        )
        if not isinstance(data, dict):
            raise self._malformed(None, "search body is not an object")
        matches: list[SymbolMatch] = []
        for item in data.get("quotes") or []:
            if item.get("quoteType") not in _SEARCHABLE_TYPES or not item.get("symbol"):
                continue
            matches.append(
                SymbolMatch(
                    symbol=item["symbol"],
                    name=item.get("longname") or item.get("shortname") or item["symbol"],
                    exchange=item.get("exchange"),
                )
            )
        return matches

    async def fetch_profile(self, symbol: str) -> CompanyProfile:
        data = await self._get_json(
            f"/v10/finance/quoteSummary/{symbol}",
            params={"modules": "assetProfile"},
            symbol=symbol,
        )
        if not isinstance(data, dict):
            raise self._malformed(symbol, "profile body is not an object")
        summary = data.get("quoteSummary") or {}
        results = summary.get("result") or []
        profile = (results[0] or {}).get("assetProfile") if results else None
        if not profile or not (profile.get("sector") or profile.get("industry")):
            raise self._not_found(symbol)
        return CompanyProfile(
            symbol=symbol,
            sector=profile.get("sector"),
            industry=profile.get("industry"),
            provider=self.name,
        )
