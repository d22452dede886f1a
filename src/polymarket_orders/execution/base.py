"""Exchange order API base class."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from decimal import Decimal

from polymarket_orders.orders import Side


@dataclass(frozen=True)
class ExchangeAck:
    """An order accepted by the exchange."""

    order_id: str
    status: str = ""


class Exchange(ABC):
    """Primitive order types the remote CLOB supports.

    Implementations raise :class:`~polymarket_orders.errors.ExchangeRejected`
    with the exchange's own message when an order is refused, and
    :class:`~polymarket_orders.errors.NotAuthenticated` when no session is
    available.
    """

    @abstractmethod
    def submit_market(self, token_id: str, side: Side, amount: Decimal) -> ExchangeAck:
        """Submit a fill-or-kill market order.

        ``amount`` is USDC for BUY and shares for SELL, as the exchange's
        market-order primitive expects.
        """

    @abstractmethod
    def submit_limit(self, token_id: str, side: Side, price: Decimal, size: Decimal) -> ExchangeAck:
        """Submit a good-til-cancelled resting order."""

    def cancel(self, order_id: str) -> bool:
        """Cancel a resting order. Returns True if cancelled, False otherwise."""
        return False
