"""HTTP endpoints over the provider manager."""

from __future__ import annotations

import logging
import time

from fastapi import APIRouter, Query
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from .manager import ProviderManager

logger = logging.getLogger(__name__)


class SymbolRequest(BaseModel):
    symbol: str


_REASON_MESSAGES = {
    "invalid_format": "Invalid symbol format",
    "not_found": "Symbol not found",
    "unavailable": "Unable to validate symbol right now",
}


def create_quote_router(manager: ProviderManager) -> APIRouter:
    """Create the /api router bound to the shared ProviderManager.

    Every handler is a thin wrapper: domain errors raised by the manager
    (SymbolNotFoundError, AllProvidersExhaustedError, InvalidSymbolError)
    propagate to the application's exception handler.
    """
    router = APIRouter(prefix="/api", tags=["quotes"])

    @router.get("/health")
    async def health() -> dict:
        return {"status": "ok"}

    @router.post("/validate-symbol")
    async def validate_symbol(body: SymbolRequest):
        """Check a ticker exists before it is added to a watchlist."""
        result = await manager.validate_symbol(body.symbol)
        if not result.valid:
            return JSONResponse(
                status_code=503 if result.reason == "unavailable" else 400,
                content={
                    "valid": False,
                    "symbol": result.symbol,
                    "reason": result.reason,
                    "error": _REASON_MESSAGES.get(result.reason or "", "Invalid symbol"),
                },
            )
        return {
            "valid": True,
            "symbol": result.symbol,
            "name": result.name,
            "currentPrice": result.price,
            "provider": result.provider,
        }

    @router.get("/search-symbols")
    async def search_symbols(q: str = Query("", max_length=64)) -> dict:
        results = await manager.search_symbols(q)
        return {
            "success": True,
            "query": q,
            "results": [m.to_dict() for m in results],
            "count": len(results),
        }

    @router.get("/provider-status")
    async def provider_status() -> dict:
        return {
            "success": True,
            "stats": manager.get_provider_stats(),
            "timestamp": time.time(),
        }

    @router.post("/refresh-stock")
    async def refresh_stock(body: SymbolRequest) -> dict:
        """Force a provider round-trip for one symbol."""
        quote = await manager.refresh_quote(body.symbol)
        logger.info("Refreshed %s via %s", quote.symbol, quote.provider)
        return {"success": True, "stock": quote.to_dict()}

    @router.get("/quotes/{symbol}")
    async def get_quote(symbol: str) -> dict:
        quote = await manager.get_quote(symbol)
        return quote.to_dict()

    @router.get("/company-profile/{symbol}")
    async def company_profile(symbol: str) -> dict:
        profile = await manager.fetch_company_profile(symbol)
        return {"profile": profile.to_dict() if profile else None}

    return router
