"""FastAPI application: wires the quote subsystem and owns its lifecycle."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.quotes import (
    PollingScheduler,
    ProviderManager,
    QuoteCache,
    QuoteSettings,
    SubscriptionRegistry,
    create_provider_manager,
    create_quote_router,
    create_quote_stream_router,
    load_settings,
)
from app.quotes.exceptions import (
    AllProvidersExhaustedError,
    ConfigError,
    InvalidSymbolError,
    QuoteError,
    SymbolNotFoundError,
)

logger = logging.getLogger(__name__)

_STATUS_MAP = {
    InvalidSymbolError: 400,
    SymbolNotFoundError: 404,
    AllProvidersExhaustedError: 503,
    ConfigError: 500,
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Start the poller on startup; stop it and close adapters on shutdown."""
    scheduler: PollingScheduler = app.state.scheduler
    await scheduler.start()

    yield

    await scheduler.stop()
    await app.state.manager.aclose()


def create_app(
    settings: QuoteSettings | None = None,
    manager: ProviderManager | None = None,
) -> FastAPI:
    """Create the application.

    Cache, manager, registry and scheduler are built exactly once here and
    shared by reference with the routers. Pass ``manager`` to supply
    pre-built providers instead of building them from ``settings``.
    """
    settings = settings or load_settings()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if manager is None:
        manager = create_provider_manager(settings, QuoteCache(ttl=settings.cache_ttl))
    registry = SubscriptionRegistry()
    scheduler = PollingScheduler(
        manager,
        registry,
        poll_interval=settings.poll_interval,
        max_in_flight=settings.max_in_flight,
        health_check_interval=settings.health_check_interval,
        health_check_symbol=settings.health_check_symbol,
    )

    app = FastAPI(
        title="Stock Quote Service",
        description="Multi-provider stock quotes with live WebSocket updates",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.manager = manager
    app.state.registry = registry
    app.state.scheduler = scheduler

    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.allowed_origins),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(create_quote_router(manager))
    app.include_router(create_quote_stream_router(registry, manager))

    @app.exception_handler(QuoteError)
    async def quote_exception_handler(request: Request, exc: QuoteError):
        status = _STATUS_MAP.get(type(exc), 500)
        if status >= 500:
            logger.warning("%s on %s: %s", type(exc).__name__, request.url.path, exc)
        return JSONResponse(
            status_code=status,
            content={"error": type(exc).__name__, "detail": str(exc)},
        )

    return app


def run() -> None:
    """Console entry point: serve the app with uvicorn."""
    import uvicorn

    uvicorn.run("app.main:create_app", factory=True, host="0.0.0.0", port=8000)
