"""Market order executor: price a market order from the book and submit it."""

import logging
from decimal import Decimal

from polymarket_orders.errors import InvalidAmount, NoLiquidity, NotAuthenticated, OrderError
from polymarket_orders.execution.base import Exchange
from polymarket_orders.orders import MarketOrderRequest, OrderResult, Side
from polymarket_orders.quotes import QuoteReader
from polymarket_orders.session import ExchangeSession

logger = logging.getLogger(__name__)


class MarketOrderExecutor:
    """Execute market orders at the best available price.

    The executed price and size in the result are estimates computed from
    the quote read before submission. The book can move between that read
    and the exchange fill; the exchange's fill is authoritative and this
    race is accepted rather than bounded.
    """

    def __init__(self, session: ExchangeSession, quotes: QuoteReader, exchange: Exchange) -> None:
        self._session = session
        self._quotes = quotes
        self._exchange = exchange

    def execute(self, request: MarketOrderRequest) -> OrderResult:
        """Run a market order; failures are returned in the result, never raised."""
        try:
            return self._execute(request)
        except OrderError as exc:
            logger.error("Market order %s %s failed [%s]: %s", request.side.value, request.token_id, exc.code, exc)
            return OrderResult(success=False, error=str(exc), error_code=exc.code)

    def _execute(self, request: MarketOrderRequest) -> OrderResult:
        if not request.amount.is_finite() or request.amount <= 0:
            msg = f"Amount must be greater than 0 (got {request.amount})"
            raise InvalidAmount(msg)
        if not self._session.is_established():
            raise NotAuthenticated

        quote = self._quotes.get_quote(request.token_id)
        # BUY pays the ask, SELL receives the bid.
        price = quote.best_ask if request.side == Side.BUY else quote.best_bid
        if price is None or price <= 0 or price >= 1:
            book_side = "asks" if request.side == Side.BUY else "bids"
            msg = f"No {book_side} available for token {request.token_id}"
            raise NoLiquidity(msg)

        size = request.amount / price if request.side == Side.BUY else request.amount
        logger.info(
            "Executing market order: %s %s shares @ %s (amount=%s, token=%s)",
            request.side.value,
            _fmt(size),
            price,
            request.amount,
            request.token_id,
        )

        ack = self._exchange.submit_market(request.token_id, request.side, request.amount)
        return OrderResult(success=True, order_id=ack.order_id, executed_price=price, executed_size=size)


def _fmt(value: Decimal) -> str:
    return f"{value:.4f}"
