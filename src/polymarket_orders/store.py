"""Conditional (stop) order store.

Holds the authoritative table of stop orders and persists it as one JSON
document under a fixed key in a :class:`KeyValueStore`. Records are never
deleted; terminal orders stay for history.
"""

import json
import logging
import secrets
import string
import threading
import time
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any

from polymarket_orders.errors import InvalidAmount, InvalidPrice
from polymarket_orders.orders import ConditionalOrder, OrderStatus, Side, TriggerDirection
from polymarket_orders.storage import KeyValueStore

logger = logging.getLogger(__name__)

STOP_ORDERS_KEY = "polymarket_stop_orders"
SCHEMA_VERSION = 1
STOP_INTERRUPTED_ERROR = "Interrupted during execution; the market order may or may not have been placed"

_ID_ALPHABET = string.ascii_lowercase + string.digits


class ConditionalOrderStore:
    """Create, cancel, list and transition stop orders.

    Every read-modify-write runs under one lock, so user cancels and the
    monitor thread cannot interleave a status transition. ``claim`` moves an
    order PENDING -> IN_PROGRESS atomically before it is executed; only the
    claimant may then write TRIGGERED or FAILED.
    """

    def __init__(self, backend: KeyValueStore, *, key: str = STOP_ORDERS_KEY) -> None:
        self._backend = backend
        self._key = key
        self._lock = threading.RLock()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def create(self, *, token_id: str, side: Side, trigger_price: Decimal, amount: Decimal) -> ConditionalOrder:
        """Persist a new PENDING stop order and return it."""
        if not trigger_price.is_finite() or not 0 < trigger_price < 1:
            msg = f"Trigger price must be between 0 and 1 (got {trigger_price})"
            raise InvalidPrice(msg)
        if not amount.is_finite() or amount <= 0:
            msg = f"Amount must be greater than 0 (got {amount})"
            raise InvalidAmount(msg)

        direction = TriggerDirection.for_side(side)
        with self._lock:
            orders = self._load()
            order = ConditionalOrder(
                id=self._new_id({o.id for o in orders}),
                token_id=token_id,
                side=side,
                trigger_price=trigger_price,
                amount=amount,
                trigger_direction=direction,
                status=OrderStatus.PENDING,
                created_at=_now_iso(),
            )
            orders.append(order)
            self._save(orders)

        logger.info(
            "Stop order created: %s - %s %s when price %s %s",
            order.id,
            side.value,
            amount,
            direction.value,
            trigger_price,
        )
        return order

    def cancel(self, order_id: str) -> bool:
        """Cancel a PENDING order. False if unknown, already terminal, or being executed."""
        with self._lock:
            orders = self._load()
            order = _find(orders, order_id)
            if order is None or order.status != OrderStatus.PENDING:
                return False
            order.status = OrderStatus.CANCELLED
            self._save(orders)
        logger.info("Stop order cancelled: %s", order_id)
        return True

    def claim(self, order_id: str) -> bool:
        """Atomically move a PENDING order to IN_PROGRESS. False if it is not PENDING."""
        with self._lock:
            orders = self._load()
            order = _find(orders, order_id)
            if order is None or order.status != OrderStatus.PENDING:
                return False
            order.status = OrderStatus.IN_PROGRESS
            self._save(orders)
        return True

    def set_status(
        self,
        order_id: str,
        status: OrderStatus,
        *,
        order_id_on_exchange: str | None = None,
        error: str | None = None,
    ) -> bool:
        """Move an order out of PENDING/IN_PROGRESS. Terminal orders are never rewritten.

        Returns True if the transition was applied.
        """
        if status in (OrderStatus.PENDING, OrderStatus.IN_PROGRESS):
            msg = f"set_status only moves orders to a terminal status, not {status.value}"
            raise ValueError(msg)

        with self._lock:
            orders = self._load()
            order = _find(orders, order_id)
            if order is None:
                logger.warning("Cannot set status of unknown stop order %s", order_id)
                return False
            if order.status.is_terminal:
                logger.warning(
                    "Refusing to change stop order %s from %s to %s", order_id, order.status.value, status.value
                )
                return False
            order.status = status
            if status in (OrderStatus.TRIGGERED, OrderStatus.FAILED):
                order.triggered_at = _now_iso()
            if order_id_on_exchange is not None:
                order.order_id = order_id_on_exchange
            if error is not None:
                order.error = error
            self._save(orders)
        return True

    def fail_interrupted(self) -> list[ConditionalOrder]:
        """Move every IN_PROGRESS order to FAILED and return them.

        An order is only IN_PROGRESS while a monitor pass executes it, so
        one found before any pass has run belongs to a process that died
        mid-execution. Whether its market order reached the exchange is
        unknown; it is failed rather than retried so it can never fill twice.
        """
        with self._lock:
            orders = self._load()
            stranded = [o for o in orders if o.status == OrderStatus.IN_PROGRESS]
            if not stranded:
                return []
            now = _now_iso()
            for order in stranded:
                order.status = OrderStatus.FAILED
                order.triggered_at = now
                order.error = STOP_INTERRUPTED_ERROR
            self._save(orders)

        for order in stranded:
            logger.warning("Stop order %s was interrupted while executing; marked FAILED", order.id)
        return stranded

    def get(self, order_id: str) -> ConditionalOrder | None:
        with self._lock:
            return _find(self._load(), order_id)

    def list_pending(self) -> list[ConditionalOrder]:
        """All orders eligible for monitoring."""
        with self._lock:
            return [o for o in self._load() if o.status == OrderStatus.PENDING]

    def list_all(self) -> list[ConditionalOrder]:
        """Every order ever created, including terminal ones."""
        with self._lock:
            return self._load()

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def _load(self) -> list[ConditionalOrder]:
        raw = self._backend.get(self._key)
        if not raw:
            return []
        try:
            data: Any = json.loads(raw)
        except json.JSONDecodeError:
            logger.exception("Stored stop orders under %r are not valid JSON", self._key)
            raise
        # Documents written before versioning were a bare list of records.
        records = data if isinstance(data, list) else data.get("orders", [])
        if isinstance(data, dict) and data.get("version", SCHEMA_VERSION) > SCHEMA_VERSION:
            logger.warning("Stop orders stored with newer schema version %s", data["version"])
        return [ConditionalOrder.from_dict(r) for r in records]

    def _save(self, orders: list[ConditionalOrder]) -> None:
        document = {"version": SCHEMA_VERSION, "orders": [o.to_dict() for o in orders]}
        self._backend.set(self._key, json.dumps(document))

    @staticmethod
    def _new_id(existing: set[str]) -> str:
        while True:
            suffix = "".join(secrets.choice(_ID_ALPHABET) for _ in range(9))
            order_id = f"stop_{int(time.time() * 1000)}_{suffix}"
            if order_id not in existing:
                return order_id


def _find(orders: list[ConditionalOrder], order_id: str) -> ConditionalOrder | None:
    return next((o for o in orders if o.id == order_id), None)


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()
