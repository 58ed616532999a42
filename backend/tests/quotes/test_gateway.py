"""Tests for the WebSocket quote gateway."""

import pytest
from fakes import FakeProvider, make_quote
from fastapi import FastAPI
from fastapi.testclient import TestClient

from app.quotes.cache import QuoteCache
from app.quotes.exceptions import RateLimitedError
from app.quotes.gateway import ClientConnection, create_quote_stream_router
from app.quotes.manager import ProviderManager
from app.quotes.registry import SubscriptionRegistry


@pytest.fixture
def registry():
    return SubscriptionRegistry()


@pytest.fixture
def provider():
    return FakeProvider("yahoo", outcome=190.0)


@pytest.fixture
def client(registry, provider):
    manager = ProviderManager([provider], QuoteCache())
    app = FastAPI()
    app.include_router(create_quote_stream_router(registry, manager))
    with TestClient(app) as c:
        yield c


class TestQuoteStream:
    """Subscribe/unsubscribe protocol over /ws/quotes."""

    def test_connected_greeting(self, client):
        with client.websocket_connect("/ws/quotes") as ws:
            assert ws.receive_json()["type"] == "connected"

    def test_subscribe_sends_ack_and_snapshot(self, client, registry):
        with client.websocket_connect("/ws/quotes") as ws:
            ws.receive_json()
            ws.send_json({"type": "subscribe", "symbols": [" aapl "]})

            ack = ws.receive_json()
            assert ack == {"type": "subscribed", "symbols": ["AAPL"]}
            assert registry.active_symbols() == {"AAPL"}

            snapshot = ws.receive_json()
            assert snapshot["type"] == "quote"
            assert snapshot["data"]["symbol"] == "AAPL"
            assert snapshot["data"]["price"] == 190.0

    def test_invalid_symbols_are_reported(self, client, registry):
        with client.websocket_connect("/ws/quotes") as ws:
            ws.receive_json()
            ws.send_json({"type": "subscribe", "symbols": ["MSFT", "not valid!"]})

            error = ws.receive_json()
            assert error["type"] == "error"
            assert error["symbols"] == ["not valid!"]
            assert ws.receive_json() == {"type": "subscribed", "symbols": ["MSFT"]}
            assert registry.active_symbols() == {"MSFT"}

    def test_unsubscribe(self, client, registry):
        with client.websocket_connect("/ws/quotes") as ws:
            ws.receive_json()
            ws.send_json({"type": "subscribe", "symbols": ["AAPL", "MSFT"]})
            ws.receive_json()  # subscribed
            ws.send_json({"type": "unsubscribe", "symbols": ["aapl"]})

            # Snapshots may arrive before the unsubscribe ack
            message = ws.receive_json()
            while message["type"] == "quote":
                message = ws.receive_json()
            assert message == {"type": "unsubscribed", "symbols": ["AAPL"]}
            assert registry.active_symbols() == {"MSFT"}

    def test_unknown_message_type(self, client):
        with client.websocket_connect("/ws/quotes") as ws:
            ws.receive_json()
            ws.send_json({"type": "subscribeEquities", "symbols": ["AAPL"]})
            reply = ws.receive_json()
            assert reply["type"] == "error"
            assert "subscribeEquities" in reply["message"]

    def test_non_json_message(self, client):
        with client.websocket_connect("/ws/quotes") as ws:
            ws.receive_json()
            ws.send_text("hello")
            assert ws.receive_json()["type"] == "error"

    def test_binary_frame_gets_error_reply(self, client, registry):
        with client.websocket_connect("/ws/quotes") as ws:
            ws.receive_json()
            ws.send_bytes(b"\x00\x01")
            reply = ws.receive_json()
            assert reply["type"] == "error"
            assert "Binary" in reply["message"]

            ws.send_json({"type": "subscribe", "symbols": ["AAPL"]})
            assert ws.receive_json() == {"type": "subscribed", "symbols": ["AAPL"]}
            assert registry.active_symbols() == {"AAPL"}

    def test_symbols_must_be_a_list(self, client, registry):
        with client.websocket_connect("/ws/quotes") as ws:
            ws.receive_json()
            ws.send_json({"type": "subscribe", "symbols": "AAPL"})
            assert ws.receive_json()["type"] == "error"
            assert len(registry) == 0

    def test_disconnect_removes_subscriptions(self, client, registry):
        with client.websocket_connect("/ws/quotes") as ws:
            ws.receive_json()
            ws.send_json({"type": "subscribe", "symbols": ["AAPL"]})
            ws.receive_json()

        assert registry.active_symbols() == set()

    def test_snapshot_failure_keeps_subscription(self, registry):
        failing = FakeProvider("yahoo", outcome=RateLimitedError("429", provider="yahoo"))
        manager = ProviderManager([failing], QuoteCache())
        app = FastAPI()
        app.include_router(create_quote_stream_router(registry, manager))

        with TestClient(app) as client, client.websocket_connect("/ws/quotes") as ws:
            ws.receive_json()
            ws.send_json({"type": "subscribe", "symbols": ["AAPL"]})
            assert ws.receive_json()["type"] == "subscribed"
            ws.send_json({"type": "ping"})
            # No snapshot was queued; the next message is the error reply
            assert ws.receive_json()["type"] == "error"
            assert registry.active_symbols() == {"AAPL"}


@pytest.mark.asyncio
class TestClientConnection:
    """The per-client outbound queue."""

    async def test_call_enqueues_quote_message(self):
        conn = ClientConnection("c1")
        conn(make_quote("AAPL", 190.0))
        message = await conn.next_message()
        assert message["type"] == "quote"
        assert message["data"]["symbol"] == "AAPL"

    async def test_full_queue_drops_oldest(self):
        conn = ClientConnection("c1", max_queue=2)
        for i in range(3):
            conn.send({"n": i})
        assert conn.dropped == 1
        assert await conn.next_message() == {"n": 1}
        assert await conn.next_message() == {"n": 2}

    async def test_closed_connection_ignores_sends(self):
        conn = ClientConnection("c1", max_queue=1)
        conn.close()
        conn.send({"n": 1})
        assert conn.closed
        assert conn._queue.empty()

    async def test_identity_hash(self):
        a, b = ClientConnection("same"), ClientConnection("same")
        registry = SubscriptionRegistry()
        registry.subscribe(["AAPL"], a)
        registry.subscribe(["AAPL"], b)
        assert registry.callbacks_for("AAPL") == [a, b]
