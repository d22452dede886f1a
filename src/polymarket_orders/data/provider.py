"""BookSource protocol for order-book data sources.

The REST client (ClobBookClient) and the push-fed StreamingBookSource both
satisfy this protocol via structural typing.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from polymarket_orders.data.models import OrderBook


class BookSource(Protocol):
    """Structural protocol for order-book sources.

    Implementations raise :class:`~polymarket_orders.errors.QuoteUnavailable`
    when the snapshot cannot be fetched.
    """

    def get_orderbook(self, token_id: str) -> OrderBook: ...
