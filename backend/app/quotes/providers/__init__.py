"""Concrete quote provider adapters, keyed by descriptor name."""

from .alpha_vantage import AlphaVantageProvider
from .base import HttpQuoteProvider
from .demo import DemoQuoteProvider
from .fmp import FinancialModelingPrepProvider
from .twelve_data import TwelveDataProvider
from .yahoo import YahooFinanceProvider

PROVIDER_CLASSES = {
    "yahoo": YahooFinanceProvider,
    "alpha_vantage": AlphaVantageProvider,
    "fmp": FinancialModelingPrepProvider,
    "twelve_data": TwelveDataProvider,
    "demo": DemoQuoteProvider,
}

__all__ = [
    "AlphaVantageProvider",
    "DemoQuoteProvider",
    "FinancialModelingPrepProvider",
    "HttpQuoteProvider",
    "PROVIDER_CLASSES",
    "TwelveDataProvider",
    "YahooFinanceProvider",
]
