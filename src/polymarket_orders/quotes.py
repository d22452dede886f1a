"""Quote reader: top of book for a token."""

import logging

from polymarket_orders.data.models import Quote
from polymarket_orders.data.provider import BookSource

logger = logging.getLogger(__name__)


class QuoteReader:
    """Derive :class:`Quote` objects from an order-book source.

    A missing side of the book yields ``None`` for that price; no synthetic
    price is invented. Source failures propagate as ``QuoteUnavailable``.
    """

    def __init__(self, source: BookSource) -> None:
        self._source = source

    def get_quote(self, token_id: str) -> Quote:
        book = self._source.get_orderbook(token_id)
        quote = Quote.from_orderbook(book)
        if not quote.token_id:
            quote = quote.model_copy(update={"token_id": token_id})
        logger.debug("Quote %s bid=%s ask=%s", token_id, quote.best_bid, quote.best_ask)
        return quote
