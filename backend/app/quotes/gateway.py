"""WebSocket gateway: per-client subscriptions and live quote delivery."""

from __future__ import annotations

import asyncio
import itertools
import json
import logging
from typing import Any

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from .exceptions import QuoteError
from .manager import ProviderManager
from .models import Quote
from .registry import SubscriptionRegistry
from .symbols import is_valid_symbol, normalize_symbol

logger = logging.getLogger(__name__)

_client_ids = itertools.count(1)


class ClientConnection:
    """Outbound side of one WebSocket client.

    Registered with the SubscriptionRegistry as the client's callback:
    calling it with a Quote enqueues a push message without blocking. A
    sender task drains the queue onto the socket. When the queue is full the
    oldest message is dropped, so a slow client never stalls a tick.
    """

    def __init__(self, client_id: str, max_queue: int = 256) -> None:
        self.client_id = client_id
        self._queue: asyncio.Queue[dict[str, Any]] = asyncio.Queue(maxsize=max_queue)
        self._closed = False
        self.dropped = 0

    def __call__(self, quote: Quote) -> None:
        self.send({"type": "quote", "data": quote.to_dict()})

    def __repr__(self) -> str:
        return f"ClientConnection({self.client_id!r})"

    @property
    def closed(self) -> bool:
        return self._closed

    def send(self, message: dict[str, Any]) -> None:
        if self._closed:
            return
        if self._queue.full():
            self._queue.get_nowait()
            self.dropped += 1
            logger.warning("Client %s is slow; dropped oldest message", self.client_id)
        self._queue.put_nowait(message)

    async def next_message(self) -> dict[str, Any]:
        return await self._queue.get()

    def close(self) -> None:
        self._closed = True


def create_quote_stream_router(
    registry: SubscriptionRegistry,
    manager: ProviderManager,
) -> APIRouter:
    """Create the WebSocket router bound to the shared registry and manager.

    Protocol (JSON text frames):
        client -> {"type": "subscribe" | "unsubscribe", "symbols": ["AAPL", ...]}
        server -> {"type": "connected"}
                  {"type": "subscribed" | "unsubscribed", "symbols": [...]}
                  {"type": "quote", "data": {...}}
                  {"type": "error", "message": "...", "symbols"?: [...]}
    """
    router = APIRouter(tags=["streaming"])

    @router.websocket("/ws/quotes")
    async def quote_stream(websocket: WebSocket) -> None:
        await websocket.accept()
        client = ClientConnection(client_id=f"ws-{next(_client_ids)}")
        background: set[asyncio.Task] = set()
        sender = asyncio.create_task(_pump(websocket, client), name=f"{client.client_id}-sender")
        client.send({"type": "connected", "message": "Connected to quote stream"})
        logger.info("Quote stream client connected: %s", client.client_id)

        try:
            while True:
                message = await websocket.receive()
                if message["type"] == "websocket.disconnect":
                    raise WebSocketDisconnect(message.get("code", 1000))
                raw = message.get("text")
                if raw is None:
                    client.send({"type": "error", "message": "Binary frames are not supported"})
                    continue
                snapshot = _handle_message(raw, client, registry)
                if snapshot:
                    task = asyncio.create_task(_send_snapshot(client, snapshot, registry, manager))
                    background.add(task)
                    task.add_done_callback(background.discard)
        except WebSocketDisconnect:
            logger.info("Quote stream client disconnected: %s", client.client_id)
        finally:
            # Must run before the next await: no push may reach a dead socket
            registry.remove_callback(client)
            client.close()
            pending = [sender, *background]
            for task in pending:
                task.cancel()
            await asyncio.gather(*pending, return_exceptions=True)

    return router


def _parse_symbols(raw: Any) -> tuple[list[str], list[str]]:
    """Split a client-supplied symbol list into (valid, invalid)."""
    valid: list[str] = []
    invalid: list[str] = []
    for item in raw:
        if not isinstance(item, str):
            invalid.append(str(item))
            continue
        symbol = normalize_symbol(item)
        if is_valid_symbol(symbol):
            if symbol not in valid:
                valid.append(symbol)
        else:
            invalid.append(item)
    return valid, invalid


def _handle_message(
    raw: str,
    client: ClientConnection,
    registry: SubscriptionRegistry,
) -> list[str]:
    """Apply one client message. Returns symbols that need an initial snapshot.

    Synchronous: registry mutations never straddle an await.
    """
    try:
        message = json.loads(raw)
    except ValueError:
        client.send({"type": "error", "message": "Message must be JSON"})
        return []
    if not isinstance(message, dict):
        client.send({"type": "error", "message": "Message must be a JSON object"})
        return []

    kind = message.get("type")
    symbols = message.get("symbols")
    if kind not in ("subscribe", "unsubscribe"):
        client.send({"type": "error", "message": f"Unknown message type: {kind!r}"})
        return []
    if not isinstance(symbols, list):
        client.send({"type": "error", "message": "'symbols' must be a list"})
        return []

    valid, invalid = _parse_symbols(symbols)
    if invalid:
        client.send({"type": "error", "message": "Invalid symbols ignored", "symbols": invalid})

    if kind == "subscribe":
        new = [s for s in valid if s not in registry.symbols_for(client)]
        registry.subscribe(valid, client)
        client.send({"type": "subscribed", "symbols": valid})
        logger.debug("Client %s subscribed to %s", client.client_id, valid)
        return new

    registry.unsubscribe(valid, client)
    client.send({"type": "unsubscribed", "symbols": valid})
    logger.debug("Client %s unsubscribed from %s", client.client_id, valid)
    return []


async def _send_snapshot(
    client: ClientConnection,
    symbols: list[str],
    registry: SubscriptionRegistry,
    manager: ProviderManager,
) -> None:
    """Push the current quote for newly subscribed symbols to one client."""
    for symbol in symbols:
        try:
            quote = await manager.get_quote(symbol)
        except QuoteError as e:
            logger.debug("No snapshot for %s: %s", symbol, e)
            continue
        if symbol in registry.symbols_for(client):
            client(quote)


async def _pump(websocket: WebSocket, client: ClientConnection) -> None:
    """Drain the client's queue onto the socket until it closes."""
    while True:
        message = await client.next_message()
        try:
            await websocket.send_json(message)
        except (WebSocketDisconnect, RuntimeError) as e:
            logger.debug("Send to %s failed: %s", client.client_id, e)
            return
