"""Paper exchange for simulated order execution."""

import itertools
import logging
import threading
from decimal import Decimal
from typing import Any

from polymarket_orders.errors import ExchangeRejected, NoLiquidity
from polymarket_orders.execution.base import Exchange, ExchangeAck
from polymarket_orders.orders import Side
from polymarket_orders.quotes import QuoteReader

logger = logging.getLogger(__name__)


class PaperSigner:
    """Signer stand-in for paper mode: an address and nothing to sign."""

    def __init__(self, address: str = "0xpaper") -> None:
        self._address = address

    @property
    def address(self) -> str:
        return self._address

    def sign(self, message_hash: str) -> str:
        return ""


class PaperClient:
    """Session client for paper mode. Credentials are derived locally."""

    def __init__(self, funding_address: str) -> None:
        self.funding_address = funding_address
        self.creds: dict[str, str] | None = None

    def create_or_derive_api_creds(self) -> dict[str, str]:
        return {"api_key": f"paper-{self.funding_address}"}

    def set_api_creds(self, creds: dict[str, str]) -> None:
        self.creds = creds


def paper_client_factory(signer: Any, funding_address: str) -> PaperClient:
    return PaperClient(funding_address)


class PaperExchange(Exchange):
    """Simulated exchange tracking a virtual USDC balance and share positions.

    Market orders fill in full at the current top of book or are rejected,
    mirroring fill-or-kill. Limit orders rest until cancelled; they are never
    matched.
    """

    def __init__(self, quotes: QuoteReader, starting_balance: Decimal = Decimal("1000")) -> None:
        self._quotes = quotes
        self._balance = starting_balance
        self._positions: dict[str, Decimal] = {}
        self._open_orders: dict[str, dict[str, Any]] = {}
        self._ids = itertools.count(1)
        self._lock = threading.Lock()

    def submit_market(self, token_id: str, side: Side, amount: Decimal) -> ExchangeAck:
        quote = self._quotes.get_quote(token_id)
        price = quote.best_ask if side == Side.BUY else quote.best_bid
        if price is None or price <= 0:
            raise NoLiquidity(f"No {'asks' if side == Side.BUY else 'bids'} available")

        with self._lock:
            if side == Side.BUY:
                if amount > self._balance:
                    msg = f"not enough balance / allowance: have {self._balance}, need {amount}"
                    raise ExchangeRejected(msg)
                shares = amount / price
                self._balance -= amount
                self._positions[token_id] = self._positions.get(token_id, Decimal("0")) + shares
            else:
                held = self._positions.get(token_id, Decimal("0"))
                if amount > held:
                    msg = f"not enough balance / allowance: have {held} shares, need {amount}"
                    raise ExchangeRejected(msg)
                self._positions[token_id] = held - amount
                if self._positions[token_id] == 0:
                    del self._positions[token_id]
                self._balance += amount * price
            order_id = self._next_id()

        logger.info("[PAPER] %s %s amount=%s @ %s (order %s)", side.value, token_id, amount, price, order_id)
        return ExchangeAck(order_id=order_id, status="matched")

    def submit_limit(self, token_id: str, side: Side, price: Decimal, size: Decimal) -> ExchangeAck:
        with self._lock:
            order_id = self._next_id()
            self._open_orders[order_id] = {"token_id": token_id, "side": side.value, "price": price, "size": size}
        logger.info("[PAPER] resting %s %s %s @ %s (order %s)", side.value, size, token_id, price, order_id)
        return ExchangeAck(order_id=order_id, status="live")

    def cancel(self, order_id: str) -> bool:
        with self._lock:
            return self._open_orders.pop(order_id, None) is not None

    @property
    def balance(self) -> Decimal:
        return self._balance

    @property
    def positions(self) -> dict[str, Decimal]:
        with self._lock:
            return dict(self._positions)

    @property
    def open_orders(self) -> dict[str, dict[str, Any]]:
        with self._lock:
            return dict(self._open_orders)

    def _next_id(self) -> str:
        return f"paper-{next(self._ids)}"
