"""Shared plumbing for HTTP-backed quote providers."""

from __future__ import annotations

import logging
from typing import Any

import httpx
from aiolimiter import AsyncLimiter

from ..exceptions import (
    MalformedResponseError,
    ProviderError,
    ProviderTimeoutError,
    RateLimitedError,
    SymbolNotFoundError,
)
from ..interface import QuoteProvider
from ..settings import ProviderDescriptor

logger = logging.getLogger(__name__)

_USER_AGENT = "Mozilla/5.0 (compatible; stockwatch/0.1)"


def to_float(x: Any) -> float | None:
    """Coerce to float or None (handles '', None, 'None', 'N/A')."""
    if x in (None, "", "None", "N/A", "-"):
        return None
    try:
        return float(str(x).replace("%", "").replace(",", ""))
    except (TypeError, ValueError):
        return None


def to_int(x: Any) -> int | None:
    """Coerce to int or None via float first."""
    f = to_float(x)
    return int(f) if f is not None else None


class HttpQuoteProvider(QuoteProvider):
    """QuoteProvider that talks JSON over HTTP via a shared httpx.AsyncClient.

    Subclasses set ``base_url`` and implement the response mapping. This class
    owns the request budget and translates transport-level failures into the
    ProviderError taxonomy.

    The budget is an aiolimiter.AsyncLimiter of ``max_requests`` per
    ``window_seconds``. It is checked, never waited on: a spent budget raises
    RateLimitedError so the manager moves on to the next provider.
    """

    base_url: str = ""
    default_headers: dict[str, str] = {"User-Agent": _USER_AGENT}

    def __init__(
        self,
        descriptor: ProviderDescriptor,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        super().__init__(descriptor)
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            timeout=descriptor.timeout,
            headers=self.default_headers,
        )
        self._limiter = AsyncLimiter(
            max_rate=descriptor.max_requests, time_period=descriptor.window_seconds
        )

    @property
    def rate_limit_remaining(self) -> int:
        """Whole requests the local budget allows right now.

        Must be read from inside the event loop.
        """
        for n in range(int(self._limiter.max_rate), 0, -1):
            if self._limiter.has_capacity(n):
                return n
        return 0

    async def aclose(self) -> None:
        if self._owns_client and not self._client.is_closed:
            await self._client.aclose()

    async def _take_request_slot(self, symbol: str | None) -> None:
        if not self._limiter.has_capacity():
            limiter = self._limiter
            raise RateLimitedError(
                f"{self.name}: local rate limit of {limiter.max_rate:g} per "
                f"{limiter.time_period:g}s reached",
                provider=self.name,
                symbol=symbol,
                context={"retry_after": round(limiter.time_period / limiter.max_rate, 3)},
            )
        await self._limiter.acquire()

    async def _exhaust_budget(self) -> None:
        """Spend whatever capacity is left after the provider itself said 429."""
        while self._limiter.has_capacity():
            await self._limiter.acquire()

    async def _get_json(
        self,
        path: str,
        params: dict[str, Any] | None = None,
        symbol: str | None = None,
    ) -> Any:
        """GET ``base_url + path`` and return the decoded JSON body."""
        await self._take_request_slot(symbol)
        url = f"{self.base_url}{path}"
        try:
            response = await self._client.get(url, params=params)
        except httpx.TimeoutException as e:
            raise ProviderTimeoutError(
                f"{self.name}: request timed out", provider=self.name, symbol=symbol
            ) from e
        except httpx.HTTPError as e:
            raise ProviderError(
                f"{self.name}: transport error: {e}", provider=self.name, symbol=symbol
            ) from e

        if response.status_code == 429:
            logger.debug("%s: HTTP 429, marking rate window full", self.name)
            await self._exhaust_budget()
            raise RateLimitedError(
                f"{self.name}: HTTP 429",
                provider=self.name,
                symbol=symbol,
                context={"retry_after": to_float(response.headers.get("Retry-After"))},
            )
        if response.status_code == 404:
            raise SymbolNotFoundError(
                f"{self.name}: {symbol or path} not found", provider=self.name, symbol=symbol
            )
        if response.status_code >= 400:
            raise ProviderError(
                f"{self.name}: HTTP {response.status_code}",
                provider=self.name,
                symbol=symbol,
                context={"status_code": response.status_code},
            )

        try:
            return response.json()
        except ValueError as e:
            raise MalformedResponseError(
                f"{self.name}: response is not JSON", provider=self.name, symbol=symbol
            ) from e

    def _malformed(self, symbol: str | None, reason: str) -> MalformedResponseError:
        return MalformedResponseError(
            f"{self.name}: unexpected response shape ({reason})",
            provider=self.name,
            symbol=symbol,
            context={"reason": reason},
        )

    def _not_found(self, symbol: str) -> SymbolNotFoundError:
        return SymbolNotFoundError(
            f"{self.name}: no data for {symbol}", provider=self.name, symbol=symbol
        )
