"""ClobExchange: submits real orders to Polymarket via py-clob-client."""

import logging
from decimal import Decimal
from typing import Any

from polymarket_orders.errors import ExchangeRejected
from polymarket_orders.execution.base import Exchange, ExchangeAck
from polymarket_orders.orders import Side
from polymarket_orders.session import ExchangeSession

logger = logging.getLogger(__name__)


class ClobExchange(Exchange):
    """Submit orders on the Polymarket CLOB through the session's client.

    Requires ``py-clob-client`` (``pip install py-clob-client``).
    The client is read from the session on every call, so a logout or a
    session switch takes effect immediately.
    """

    def __init__(self, session: ExchangeSession) -> None:
        self._session = session

    def submit_market(self, token_id: str, side: Side, amount: Decimal) -> ExchangeAck:
        """Post a FOK market order for ``amount`` (USDC for BUY, shares for SELL)."""
        client = self._session.client
        from py_clob_client.clob_types import MarketOrderArgs, OrderType  # type: ignore[import-not-found]  # noqa: PLC0415

        order_args = MarketOrderArgs(token_id=token_id, amount=float(amount), side=_side_const(side))
        try:
            signed = client.create_market_order(order_args)
            resp = client.post_order(signed, OrderType.FOK)
        except Exception as exc:
            logger.exception("Market order for %s failed", token_id)
            raise ExchangeRejected(str(exc)) from exc
        return _ack_or_raise(resp)

    def submit_limit(self, token_id: str, side: Side, price: Decimal, size: Decimal) -> ExchangeAck:
        """Post a GTC limit order for ``size`` shares at ``price``."""
        client = self._session.client
        from py_clob_client.clob_types import OrderArgs, OrderType  # type: ignore[import-not-found]  # noqa: PLC0415

        order_args = OrderArgs(token_id=token_id, price=float(price), size=float(size), side=_side_const(side))
        try:
            signed = client.create_order(order_args)
            resp = client.post_order(signed, OrderType.GTC)
        except Exception as exc:
            logger.exception("Limit order for %s failed", token_id)
            raise ExchangeRejected(str(exc)) from exc
        return _ack_or_raise(resp)

    def cancel(self, order_id: str) -> bool:
        """Cancel an open order by ID."""
        client = self._session.client
        try:
            resp = client.cancel(order_id=order_id)
        except Exception:
            logger.exception("Failed to cancel order %s", order_id)
            return False
        not_canceled = resp.get("not_canceled") if isinstance(resp, dict) else None
        if not_canceled and order_id in not_canceled:
            logger.warning("Order %s not cancelled: %s", order_id, not_canceled[order_id])
            return False
        return True


def _side_const(side: Side) -> str:
    from py_clob_client.order_builder.constants import BUY, SELL  # type: ignore[import-not-found]  # noqa: PLC0415

    return str(BUY if side == Side.BUY else SELL)


def _ack_or_raise(resp: Any) -> ExchangeAck:
    """Turn a post_order response into an ack, passing rejections through verbatim."""
    if not resp:
        raise ExchangeRejected("empty response from exchange")
    if resp.get("errorMsg") or resp.get("success") is False:
        raise ExchangeRejected(str(resp.get("errorMsg") or "order rejected"))
    order_id = resp.get("orderID") or resp.get("order_id")
    if not order_id:
        raise ExchangeRejected("exchange response did not include an order id")
    return ExchangeAck(order_id=str(order_id), status=str(resp.get("status", "")))
