"""Order types: market and limit requests, results, and client-side stop orders."""

from dataclasses import asdict, dataclass
from decimal import Decimal
from enum import Enum
from typing import Any


class Side(str, Enum):
    """Order side."""

    BUY = "BUY"
    SELL = "SELL"


class TriggerDirection(str, Enum):
    """Which way price must cross the trigger for a stop order to fire."""

    ABOVE = "above"
    BELOW = "below"

    @classmethod
    def for_side(cls, side: Side) -> "TriggerDirection":
        """BUY stops are breakout buys (ABOVE); SELL stops are stop-losses (BELOW)."""
        return cls.ABOVE if side == Side.BUY else cls.BELOW


class OrderStatus(str, Enum):
    """Lifecycle status of a conditional order."""

    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    TRIGGERED = "triggered"
    CANCELLED = "cancelled"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in _TERMINAL_STATUSES


_TERMINAL_STATUSES = frozenset({OrderStatus.TRIGGERED, OrderStatus.CANCELLED, OrderStatus.FAILED})


@dataclass(frozen=True)
class MarketOrderRequest:
    """An immediate order.

    ``amount`` is quote currency (USDC) to spend for BUY and the number of
    shares to sell for SELL.
    """

    token_id: str
    side: Side
    amount: Decimal


@dataclass(frozen=True)
class LimitOrderRequest:
    """A resting good-til-cancelled order at an explicit price."""

    token_id: str
    side: Side
    price: Decimal
    size: Decimal


@dataclass
class OrderResult:
    """Outcome of an order submission.

    ``executed_price`` and ``executed_size`` are local estimates derived from
    the quote used to price the order, not fills reported by the exchange.
    """

    success: bool
    order_id: str | None = None
    executed_price: Decimal | None = None
    executed_size: Decimal | None = None
    error: str | None = None
    error_code: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "order_id": self.order_id,
            "executed_price": _decimal_str(self.executed_price),
            "executed_size": _decimal_str(self.executed_size),
            "error": self.error,
            "error_code": self.error_code,
        }


@dataclass
class ConditionalOrder:
    """A stop order held client-side until its trigger condition is met."""

    id: str
    token_id: str
    side: Side
    trigger_price: Decimal
    amount: Decimal
    trigger_direction: TriggerDirection
    status: OrderStatus
    created_at: str
    triggered_at: str | None = None
    order_id: str | None = None
    error: str | None = None

    def is_triggered_by(self, price: Decimal) -> bool:
        """Return True if ``price`` satisfies this order's trigger condition."""
        if self.trigger_direction == TriggerDirection.ABOVE:
            return price >= self.trigger_price
        return price <= self.trigger_price

    def to_dict(self) -> dict[str, Any]:
        """Serialize to plain JSON-compatible data."""
        data = asdict(self)
        data["side"] = self.side.value
        data["trigger_direction"] = self.trigger_direction.value
        data["status"] = self.status.value
        data["trigger_price"] = str(self.trigger_price)
        data["amount"] = str(self.amount)
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ConditionalOrder":
        """Parse a persisted record.

        Older records used ``stopPrice``/``triggerCondition``/``tokenId``
        keys; both spellings are accepted.
        """
        side = Side(str(data["side"]).upper())
        direction_raw = data.get("trigger_direction") or data.get("triggerCondition")
        return cls(
            id=str(data["id"]),
            token_id=str(data.get("token_id") or data.get("tokenId")),
            side=side,
            trigger_price=Decimal(str(data.get("trigger_price") or data.get("stopPrice"))),
            amount=Decimal(str(data["amount"])),
            trigger_direction=TriggerDirection(direction_raw) if direction_raw else TriggerDirection.for_side(side),
            status=OrderStatus(data["status"]),
            created_at=str(data.get("created_at") or data.get("createdAt") or ""),
            triggered_at=data.get("triggered_at"),
            order_id=data.get("order_id"),
            error=data.get("error"),
        )


def _decimal_str(value: Decimal | None) -> str | None:
    return str(value) if value is not None else None
