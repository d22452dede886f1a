"""Pydantic models for CLOB order-book data."""

from decimal import Decimal
from typing import Any

from pydantic import BaseModel, Field


def _level_field(level: Any, key: str) -> Any:
    """Read a level attribute from either a dict or a py-clob-client summary object."""
    if isinstance(level, dict):
        return level[key]
    return getattr(level, key)


class OrderBookLevel(BaseModel):
    """A single level (price + size) in an order book."""

    price: Decimal
    size: Decimal

    @classmethod
    def from_api(cls, data: Any) -> "OrderBookLevel":
        """Parse a level from the CLOB JSON shape (prices and sizes arrive as strings)."""
        return cls(
            price=Decimal(str(_level_field(data, "price"))),
            size=Decimal(str(_level_field(data, "size"))),
        )


class OrderBook(BaseModel):
    """An order-book snapshot for one token."""

    token_id: str = ""
    bids: list[OrderBookLevel] = Field(default_factory=list)
    asks: list[OrderBookLevel] = Field(default_factory=list)

    @classmethod
    def from_api(cls, token_id: str, data: Any) -> "OrderBook":
        """Parse a book from a REST response, a WebSocket ``book`` event, or a summary object."""
        if isinstance(data, dict):
            bids = data.get("bids") or []
            asks = data.get("asks") or []
        else:
            bids = getattr(data, "bids", None) or []
            asks = getattr(data, "asks", None) or []
        return cls(
            token_id=token_id,
            bids=[OrderBookLevel.from_api(b) for b in bids],
            asks=[OrderBookLevel.from_api(a) for a in asks],
        )

    def with_level(self, side: str, price: Decimal, size: Decimal) -> "OrderBook":
        """Return a copy with the level at ``price`` replaced; a zero size removes it.

        ``side`` is ``BUY`` for the bid side and ``SELL`` for the ask side, as
        the CLOB labels ``price_change`` entries.
        """
        key = "bids" if side == "BUY" else "asks"
        levels = [level for level in getattr(self, key) if level.price != price]
        if size > 0:
            levels.append(OrderBookLevel(price=price, size=size))
        return self.model_copy(update={key: levels})

    @property
    def best_bid(self) -> Decimal | None:
        """Highest bid price, or None if there are no bids."""
        if not self.bids:
            return None
        return max(level.price for level in self.bids)

    @property
    def best_ask(self) -> Decimal | None:
        """Lowest ask price, or None if there are no asks."""
        if not self.asks:
            return None
        return min(level.price for level in self.asks)


class Quote(BaseModel):
    """Top of book for one token. Recomputed on every read, never stored."""

    token_id: str
    best_bid: Decimal | None = None
    best_ask: Decimal | None = None

    @classmethod
    def from_orderbook(cls, book: OrderBook) -> "Quote":
        """Derive the quote from an order-book snapshot."""
        return cls(token_id=book.token_id, best_bid=book.best_bid, best_ask=book.best_ask)

    @property
    def spread(self) -> Decimal | None:
        """Best ask minus best bid. None if either side is empty."""
        if self.best_bid is None or self.best_ask is None:
            return None
        return self.best_ask - self.best_bid
