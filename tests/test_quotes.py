"""Tests for the quote reader."""

from decimal import Decimal
from unittest.mock import MagicMock

import pytest

from polymarket_orders.data.models import OrderBook, OrderBookLevel
from polymarket_orders.errors import QuoteUnavailable
from polymarket_orders.quotes import QuoteReader


def _source(book: OrderBook) -> MagicMock:
    source = MagicMock()
    source.get_orderbook.return_value = book
    return source


def test_quote_from_both_sides():
    book = OrderBook(
        token_id="tok1",
        bids=[OrderBookLevel(price=Decimal("0.44"), size=Decimal("1"))],
        asks=[OrderBookLevel(price=Decimal("0.46"), size=Decimal("1"))],
    )
    quote = QuoteReader(_source(book)).get_quote("tok1")
    assert quote.best_bid == Decimal("0.44")
    assert quote.best_ask == Decimal("0.46")


def test_empty_book_yields_none_prices():
    quote = QuoteReader(_source(OrderBook())).get_quote("tok1")
    assert quote.token_id == "tok1"
    assert quote.best_bid is None
    assert quote.best_ask is None


def test_source_failure_propagates():
    source = MagicMock()
    source.get_orderbook.side_effect = QuoteUnavailable("down")
    with pytest.raises(QuoteUnavailable):
        QuoteReader(source).get_quote("tok1")
