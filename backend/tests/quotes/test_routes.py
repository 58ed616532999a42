"""Tests for the HTTP API and the application factory."""

import pytest
from fakes import FakeProvider, make_quote
from fastapi.testclient import TestClient

from app.main import create_app
from app.quotes.cache import QuoteCache
from app.quotes.exceptions import RateLimitedError, SymbolNotFoundError
from app.quotes.manager import ProviderManager
from app.quotes.models import SymbolMatch
from app.quotes.settings import QuoteSettings, load_settings


def _app_with(*providers):
    manager = ProviderManager(list(providers), QuoteCache())
    return create_app(settings=QuoteSettings(poll_interval=60), manager=manager)


@pytest.fixture
def yahoo():
    return FakeProvider(
        "yahoo",
        outcome=make_quote("AAPL", 190.5, "yahoo", name="Apple Inc."),
        search_results=[SymbolMatch("AAPL", "Apple Inc.", "NMS")],
    )


@pytest.fixture
def client(yahoo):
    with TestClient(_app_with(yahoo)) as c:
        yield c


class TestQuoteRoutes:
    """Thin wrappers over ProviderManager."""

    def test_health(self, client):
        response = client.get("/api/health")
        assert response.status_code == 200
        assert response.json() == {"status": "ok"}

    def test_validate_symbol(self, client):
        response = client.post("/api/validate-symbol", json={"symbol": "aapl"})
        assert response.status_code == 200
        assert response.json() == {
            "valid": True,
            "symbol": "AAPL",
            "name": "Apple Inc.",
            "currentPrice": 190.5,
            "provider": "yahoo",
        }

    def test_validate_bad_format(self, client, yahoo):
        response = client.post("/api/validate-symbol", json={"symbol": "123"})
        assert response.status_code == 400
        body = response.json()
        assert body["valid"] is False
        assert body["reason"] == "invalid_format"
        assert yahoo.calls == []

    def test_validate_missing_body_field(self, client):
        response = client.post("/api/validate-symbol", json={})
        assert response.status_code == 422

    def test_get_quote(self, client):
        response = client.get("/api/quotes/AAPL")
        assert response.status_code == 200
        data = response.json()
        assert data["price"] == 190.5
        assert data["stale"] is False
        assert data["cached_at"] is not None

    def test_get_quote_invalid_symbol(self, client):
        response = client.get("/api/quotes/abc123")
        assert response.status_code == 400
        assert response.json()["error"] == "InvalidSymbolError"

    def test_refresh_stock(self, client, yahoo):
        client.get("/api/quotes/AAPL")
        response = client.post("/api/refresh-stock", json={"symbol": "AAPL"})
        assert response.status_code == 200
        assert response.json()["success"] is True
        assert response.json()["stock"]["symbol"] == "AAPL"
        assert len(yahoo.quote_calls()) == 2

    def test_search_symbols(self, client):
        response = client.get("/api/search-symbols", params={"q": "apple"})
        assert response.json() == {
            "success": True,
            "query": "apple",
            "results": [{"symbol": "AAPL", "name": "Apple Inc.", "exchange": "NMS"}],
            "count": 1,
        }

    def test_provider_status(self, client):
        client.get("/api/quotes/AAPL")
        body = client.get("/api/provider-status").json()
        assert body["success"] is True
        assert body["stats"]["providers"]["yahoo"]["successes"] == 1
        assert "timestamp" in body

    def test_company_profile(self, client):
        body = client.get("/api/company-profile/AAPL").json()
        assert body["profile"]["sector"] == "Technology"


class TestErrorMapping:
    """Domain errors become JSON error bodies with matching status codes."""

    def test_not_found_is_404(self):
        provider = FakeProvider("yahoo", outcome=SymbolNotFoundError("gone", provider="yahoo"))
        with TestClient(_app_with(provider)) as client:
            response = client.get("/api/quotes/ZZZZ")
        assert response.status_code == 404
        assert response.json()["error"] == "SymbolNotFoundError"

    def test_exhausted_is_503(self):
        provider = FakeProvider("yahoo", outcome=RateLimitedError("429", provider="yahoo"))
        with TestClient(_app_with(provider)) as client:
            response = client.get("/api/quotes/AAPL")
        assert response.status_code == 503
        assert response.json()["error"] == "AllProvidersExhaustedError"

    def test_refresh_unknown_symbol_is_404(self):
        provider = FakeProvider("yahoo", outcome=SymbolNotFoundError("gone", provider="yahoo"))
        with TestClient(_app_with(provider)) as client:
            response = client.post("/api/refresh-stock", json={"symbol": "ZZZZ"})
        assert response.status_code == 404

    def test_validate_not_found(self):
        provider = FakeProvider("yahoo", outcome=SymbolNotFoundError("gone", provider="yahoo"))
        with TestClient(_app_with(provider)) as client:
            response = client.post("/api/validate-symbol", json={"symbol": "ZZZZ"})
        assert response.status_code == 400
        assert response.json()["reason"] == "not_found"

    def test_validate_unavailable_is_503(self):
        provider = FakeProvider("yahoo", outcome=RateLimitedError("429", provider="yahoo"))
        with TestClient(_app_with(provider)) as client:
            response = client.post("/api/validate-symbol", json={"symbol": "AAPL"})
        assert response.status_code == 503
        body = response.json()
        assert body["valid"] is False
        assert body["reason"] == "unavailable"

    def test_profile_unavailable_is_null(self):
        provider = FakeProvider("yahoo", profile=SymbolNotFoundError("none", provider="yahoo"))
        with TestClient(_app_with(provider)) as client:
            body = client.get("/api/company-profile/AAPL").json()
        assert body == {"profile": None}


class TestCreateApp:
    """Lifecycle wiring."""

    def test_demo_mode_end_to_end(self):
        settings = load_settings({"USE_REAL_PRICES": "false", "QUOTE_POLL_INTERVAL": "60"})
        with TestClient(create_app(settings)) as client:
            response = client.get("/api/quotes/AAPL")
        assert response.status_code == 200
        assert response.json()["provider"] == "demo"

    def test_lifespan_starts_and_stops_scheduler(self, yahoo):
        app = _app_with(yahoo)
        with TestClient(app):
            assert app.state.scheduler.is_running
        assert not app.state.scheduler.is_running
        assert yahoo.closed
