"""Push-update channel for order books.

:class:`BookFeed` subscribes to the CLOB market WebSocket and hands ``book``
snapshots and ``price_change`` level updates to a :class:`StreamingBookSource`,
which serves the latest pushed book and falls back to a REST source for
tokens it has not heard about yet. Both paths produce the same
:class:`OrderBook`, so quotes are derived identically whichever way the
data arrived.
"""

import json
import logging
import threading
from decimal import Decimal
from typing import Any

from polymarket_orders.data.models import OrderBook
from polymarket_orders.data.provider import BookSource
from polymarket_orders.errors import QuoteUnavailable

logger = logging.getLogger(__name__)

WS_URL = "wss://ws-subscriptions-clob.polymarket.com/ws/market"


class StreamingBookSource:
    """Order-book source backed by pushed snapshots, with optional REST fallback."""

    def __init__(self, fallback: BookSource | None = None) -> None:
        self._fallback = fallback
        self._books: dict[str, OrderBook] = {}
        self._lock = threading.Lock()

    def apply_message(self, payload: Any) -> int:
        """Apply a decoded WebSocket payload (one event or a list of events).

        ``book`` events carrying both sides replace a snapshot.
        ``price_change`` events update individual levels of a snapshot already
        held; changes for tokens without one are dropped, and the REST
        fallback serves those. Other event types are ignored. Returns the
        number of books updated.
        """
        messages = payload if isinstance(payload, list) else [payload]
        updated = 0
        for msg in messages:
            if not isinstance(msg, dict):
                continue
            try:
                if msg.get("event_type") == "book":
                    updated += self._apply_book(msg)
                elif msg.get("event_type") == "price_change":
                    updated += self._apply_price_change(msg)
            except (AttributeError, KeyError, TypeError, ValueError, ArithmeticError) as exc:
                logger.warning("Ignoring malformed %s event: %s", msg.get("event_type"), exc)
        return updated

    def get_orderbook(self, token_id: str) -> OrderBook:
        with self._lock:
            book = self._books.get(token_id)
        if book is not None:
            return book
        if self._fallback is None:
            msg = f"No pushed order book for token {token_id}"
            raise QuoteUnavailable(msg)
        return self._fallback.get_orderbook(token_id)

    def clear(self) -> None:
        """Drop all pushed snapshots. Called when the channel disconnects."""
        with self._lock:
            self._books.clear()

    @property
    def token_ids(self) -> list[str]:
        with self._lock:
            return sorted(self._books)

    def _apply_book(self, msg: dict[str, Any]) -> int:
        asset_id = msg.get("asset_id")
        if not asset_id or msg.get("bids") is None or msg.get("asks") is None:
            return 0
        book = OrderBook.from_api(str(asset_id), msg)
        with self._lock:
            self._books[book.token_id] = book
        return 1

    def _apply_price_change(self, msg: dict[str, Any]) -> int:
        # Current payloads list per-asset changes under "price_changes"; older
        # ones carried a single asset_id with "changes".
        changes = msg.get("price_changes")
        if changes is None:
            changes = [{**change, "asset_id": msg.get("asset_id")} for change in msg.get("changes") or []]

        touched: set[str] = set()
        with self._lock:
            for change in changes:
                token_id = str(change.get("asset_id") or "")
                side = str(change.get("side") or "").upper()
                book = self._books.get(token_id)
                if book is None or side not in ("BUY", "SELL"):
                    continue
                price = Decimal(str(change["price"]))
                size = Decimal(str(change["size"]))
                self._books[token_id] = book.with_level(side, price, size)
                touched.add(token_id)
        return len(touched)


class BookFeed:
    """Keep a :class:`StreamingBookSource` fed from the market WebSocket.

    Runs on its own daemon thread. Reconnects with exponential backoff and
    gives up after ``max_reconnect_attempts`` consecutive failures; the
    source then serves REST snapshots only.
    """

    def __init__(
        self,
        source: StreamingBookSource,
        token_ids: list[str] | None = None,
        *,
        url: str = WS_URL,
        max_reconnect_attempts: int = 5,
        reconnect_delay: float = 1.0,
        ping_interval: float = 5.0,
    ) -> None:
        self._source = source
        self._tokens: set[str] = set(token_ids or [])
        self._url = url
        self._max_reconnect_attempts = max_reconnect_attempts
        self._reconnect_delay = reconnect_delay
        self._ping_interval = ping_interval
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None
        self._ws: Any = None
        self._connected = False

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def subscribe(self, token_ids: list[str]) -> None:
        """Add tokens to the subscription, sending it immediately if connected."""
        new_tokens = [t for t in token_ids if t not in self._tokens]
        if not new_tokens:
            return
        self._tokens.update(new_tokens)
        ws = self._ws
        if ws is not None and self._connected:
            ws.send(json.dumps({"assets_ids": new_tokens, "type": "market"}))

    def start(self) -> None:
        """Start the feed thread. No-op if already running."""
        if self._thread is not None and self._thread.is_alive():
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self.run, name="book-feed", daemon=True)
        self._thread.start()

    def stop(self, timeout: float | None = 10.0) -> None:
        """Signal the feed to stop and wait for the thread to exit."""
        self._stop.set()
        ws = self._ws
        if ws is not None:
            ws.close()
        if self._thread is not None:
            self._thread.join(timeout=timeout)
            self._thread = None

    @property
    def is_connected(self) -> bool:
        return self._connected

    def run(self) -> None:
        """Connect-listen-reconnect loop. Returns when stopped or out of attempts."""
        from websockets.exceptions import WebSocketException  # noqa: PLC0415

        attempts = 0
        while not self._stop.is_set():
            try:
                self._listen()
                attempts = 0
            except (OSError, WebSocketException) as exc:
                logger.warning("Book feed connection error: %s", exc)
            finally:
                self._connected = False
                self._ws = None
                self._source.clear()

            if self._stop.is_set():
                break
            attempts += 1
            if attempts > self._max_reconnect_attempts:
                logger.error("Book feed giving up after %d reconnection attempts", self._max_reconnect_attempts)
                break
            delay = self._reconnect_delay * (2 ** (attempts - 1))
            logger.info("Book feed reconnecting in %.1fs (attempt %d)", delay, attempts)
            self._stop.wait(delay)

    def handle_raw(self, raw: str | bytes) -> int:
        """Decode one frame and apply it. Returns the number of books updated."""
        if isinstance(raw, bytes):
            raw = raw.decode()
        if raw == "PONG":
            return 0
        try:
            payload = json.loads(raw)
        except json.JSONDecodeError:
            logger.debug("Ignoring non-JSON feed message: %s", raw)
            return 0
        return self._source.apply_message(payload)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _listen(self) -> None:
        from websockets.sync.client import connect  # noqa: PLC0415

        with connect(self._url) as ws:
            self._ws = ws
            self._connected = True
            logger.info("Book feed connected to %s", self._url)
            if self._tokens:
                ws.send(json.dumps({"assets_ids": sorted(self._tokens), "type": "market"}))
            while not self._stop.is_set():
                try:
                    raw = ws.recv(timeout=self._ping_interval)
                except TimeoutError:
                    ws.send("PING")
                    continue
                self.handle_raw(raw)
