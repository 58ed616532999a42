"""Factory for wiring providers into a ProviderManager."""

from __future__ import annotations

import logging

from .cache import QuoteCache
from .exceptions import ConfigError
from .interface import QuoteProvider
from .manager import ProviderManager
from .providers import PROVIDER_CLASSES
from .settings import QuoteSettings

logger = logging.getLogger(__name__)


def create_providers(settings: QuoteSettings) -> list[QuoteProvider]:
    """Instantiate an adapter for every enabled descriptor, in priority order.

    - No API keys (or USE_REAL_PRICES=false) → DemoQuoteProvider only
    - Otherwise → one HTTP adapter per enabled network provider
    """
    providers: list[QuoteProvider] = []
    for descriptor in settings.enabled_providers():
        cls = PROVIDER_CLASSES.get(descriptor.name)
        if cls is None:
            raise ConfigError(
                f"No adapter registered for provider {descriptor.name!r}",
                {"field": "providers", "provider": descriptor.name},
            )
        providers.append(cls(descriptor))

    if not providers:
        raise ConfigError("No quote provider is enabled", {"field": "providers"})

    if [p.name for p in providers] == ["demo"]:
        logger.info("Quote source: demo simulator (no real prices)")
    else:
        logger.info("Quote source: %s", " -> ".join(p.name for p in providers))
    return providers


def create_provider_manager(
    settings: QuoteSettings, cache: QuoteCache | None = None
) -> ProviderManager:
    """Build the single ProviderManager for the process.

    Returns a manager owning fresh adapters. Caller must await
    manager.aclose() on shutdown.
    """
    if cache is None:
        cache = QuoteCache(ttl=settings.cache_ttl)
    return ProviderManager(
        providers=create_providers(settings),
        cache=cache,
        total_timeout=settings.total_timeout,
        circuit=settings.circuit,
    )
