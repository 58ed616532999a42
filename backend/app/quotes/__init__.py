"""Quote acquisition subsystem.

Public API:
    Quote                   - Immutable quote snapshot dataclass
    QuoteCache              - Short-lived last-known-good quote store
    QuoteProvider           - Abstract interface for provider adapters
    ProviderManager         - Ordered failover, health tracking, stale fallback
    SubscriptionRegistry    - Which symbols are watched, and by whom
    PollingScheduler        - Recurring refresh of watched symbols
    load_settings           - Environment-driven configuration
    create_provider_manager - Factory that wires adapters from settings
    create_quote_router     - FastAPI router factory for the /api endpoints
    create_quote_stream_router - FastAPI router factory for the WebSocket feed
"""

from .cache import QuoteCache
from .factory import create_provider_manager
from .gateway import create_quote_stream_router
from .interface import QuoteProvider
from .manager import ProviderManager
from .models import CompanyProfile, Quote, SymbolMatch, ValidationResult
from .registry import SubscriptionRegistry
from .routes import create_quote_router
from .scheduler import PollingScheduler
from .settings import QuoteSettings, load_settings

__all__ = [
    "CompanyProfile",
    "PollingScheduler",
    "ProviderManager",
    "Quote",
    "QuoteCache",
    "QuoteProvider",
    "QuoteSettings",
    "SubscriptionRegistry",
    "SymbolMatch",
    "ValidationResult",
    "create_provider_manager",
    "create_quote_router",
    "create_quote_stream_router",
    "load_settings",
]
