"""Limit order submitter: resting GTC orders at a caller-supplied price."""

import logging

from polymarket_orders.errors import InvalidAmount, InvalidPrice, NotAuthenticated, OrderError
from polymarket_orders.execution.base import Exchange
from polymarket_orders.orders import LimitOrderRequest, OrderResult
from polymarket_orders.session import ExchangeSession

logger = logging.getLogger(__name__)


class LimitOrderSubmitter:
    """Validate and submit good-til-cancelled limit orders."""

    def __init__(self, session: ExchangeSession, exchange: Exchange) -> None:
        self._session = session
        self._exchange = exchange

    def submit(self, request: LimitOrderRequest) -> OrderResult:
        """Submit a limit order. Invalid input fails before any network call."""
        try:
            validate_limit_order(request)
            if not self._session.is_established():
                raise NotAuthenticated
            logger.info(
                "Placing limit order: %s %s shares @ %s (token=%s)",
                request.side.value,
                request.size,
                request.price,
                request.token_id,
            )
            ack = self._exchange.submit_limit(request.token_id, request.side, request.price, request.size)
        except OrderError as exc:
            logger.error("Limit order %s %s failed [%s]: %s", request.side.value, request.token_id, exc.code, exc)
            return OrderResult(success=False, error=str(exc), error_code=exc.code)
        return OrderResult(
            success=True,
            order_id=ack.order_id,
            executed_price=request.price,
            executed_size=request.size,
        )

    def cancel(self, order_id: str) -> bool:
        """Cancel a resting order. Returns False without a session."""
        if not self._session.is_established():
            return False
        return self._exchange.cancel(order_id)


def validate_limit_order(request: LimitOrderRequest) -> None:
    """Raise InvalidPrice / InvalidAmount unless 0 < price < 1 and size > 0."""
    if not request.price.is_finite() or not 0 < request.price < 1:
        msg = f"Price must be between 0 and 1 (got {request.price})"
        raise InvalidPrice(msg)
    if not request.size.is_finite() or request.size <= 0:
        msg = f"Size must be greater than 0 (got {request.size})"
        raise InvalidAmount(msg)
