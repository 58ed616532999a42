"""Twelve Data provider."""

from __future__ import annotations

from typing import Any

from ..exceptions import RateLimitedError
from ..models import Quote, SymbolMatch
from .base import HttpQuoteProvider, to_float, to_int


def _market_state(row: dict) -> str | None:
    if "is_market_open" not in row:
        return None
    return "REGULAR" if row["is_market_open"] else "CLOSED"


class TwelveDataProvider(HttpQuoteProvider):
    """Quotes from ``/quote?symbol=``.

    Errors come back as ``{"status": "error", "code": <int>, "message": ...}``
    with HTTP 200: 400/404 mean an unknown symbol, 429 means the per-minute
    credit budget is spent. No profile endpoint on the free tier.
    """

    base_url = "https://api.twelvedata.com"
    supports_search = True

    async def _request(self, path: str, params: dict[str, Any], symbol: str | None = None) -> dict:
        data = await self._get_json(
            path, params={**params, "apikey": self.descriptor.api_key}, symbol=symbol
        )
        try:
            return self._check_status(data, symbol)
        except RateLimitedError:
            await self._exhaust_budget()
            raise

    async def fetch_quote(self, symbol: str) -> Quote:
        data = await self._request("/quote", {"symbol": symbol}, symbol)
        return self.adapt_quote(data, symbol)

    def _check_status(self, data: Any, symbol: str | None) -> dict:
        if not isinstance(data, dict):
            raise self._malformed(symbol, "body is not an object")
        if data.get("status") == "error":
            code = data.get("code")
            if code == 429:
                raise RateLimitedError(
                    f"{self.name}: {data.get('message')}", provider=self.name, symbol=symbol
                )
            if code in (400, 404):
                raise self._not_found(symbol or "")
            raise self._malformed(symbol, f"error code {code}")
        return data

    def adapt_quote(self, data: Any, symbol: str) -> Quote:
        row = self._check_status(data, symbol)
        price = to_float(row.get("close"))
        if price is None or price <= 0:
            raise self._malformed(symbol, "no usable price")
        previous = to_float(row.get("previous_close"))
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
            currency=row.get("currency"),
            exchange=row.get("exchange"),
            market_state=_market_state(row),
            volume=to_int(row.get("volume")),
            day_high=to_float(row.get("high")),
            day_low=to_float(row.get("low")),
            **extra,
        )

    async def search(self, query: str) -> list[SymbolMatch]:
        body = await self._request("/symbol_search", {"symbol": query, "outputsize": 10})
        return [
            SymbolMatch(
                symbol=item["symbol"],
                name=item.get("instrument_name") or item["symbol"],
                exchange=item.get("exchange"),
            )
            for item in (body.get("data") or [])[:10]
            if item.get("symbol")
        ]
