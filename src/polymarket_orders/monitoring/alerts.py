"""Stop-order alerts.

The monitor turns each promotion, failed promotion and interrupted
execution into an :class:`Alert` and hands it to an :class:`AlertManager`,
which fans it out to the configured sinks (log, webhook, in-process
callback).
"""

from __future__ import annotations

import json
import logging
import urllib.request
from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import asdict, dataclass

from polymarket_orders.orders import ConditionalOrder, OrderResult

logger = logging.getLogger(__name__)

INFO = "info"
ERROR = "error"


@dataclass(frozen=True)
class Alert:
    """One notification about a stop order."""

    message: str
    level: str = INFO
    order_id: str | None = None
    token_id: str | None = None

    def to_dict(self) -> dict[str, str | None]:
        return asdict(self)


def stop_order_alert(order: ConditionalOrder, result: OrderResult) -> Alert:
    """Describe the outcome of promoting ``order`` to a market order."""
    if result.success:
        message = (
            f"Stop order {order.id} triggered: {order.side.value} {order.amount} on {order.token_id}"
            f" (order {result.order_id}, est. price {result.executed_price})"
        )
        return Alert(message, INFO, order.id, order.token_id)
    message = f"Stop order {order.id} failed: {result.error}"
    return Alert(message, ERROR, order.id, order.token_id)


def interrupted_alert(order: ConditionalOrder) -> Alert:
    """Describe an order whose execution was cut off; it may or may not have filled."""
    message = (
        f"Stop order {order.id} was interrupted while executing ({order.side.value} {order.amount}"
        f" on {order.token_id}); check the exchange for a fill"
    )
    return Alert(message, ERROR, order.id, order.token_id)


class AlertSink(ABC):
    """Base class for alert destinations."""

    @abstractmethod
    def send(self, alert: Alert) -> None:
        """Deliver one alert."""


class ConsoleAlertSink(AlertSink):
    """Log alerts: promotions at INFO, failures at WARNING."""

    def send(self, alert: Alert) -> None:
        if alert.level == ERROR:
            logger.warning("[ALERT] %s", alert.message)
        else:
            logger.info("[ALERT] %s", alert.message)


class CallbackAlertSink(AlertSink):
    """Hand alerts to a caller-supplied function, e.g. a UI notification hook."""

    def __init__(self, callback: Callable[[Alert], None]) -> None:
        self._callback = callback

    def send(self, alert: Alert) -> None:
        self._callback(alert)


class WebhookAlertSink(AlertSink):
    """POST alerts to a webhook URL as JSON.

    ``text`` carries the message for chat-style hooks; the remaining keys
    let a receiver route on the order without parsing it.
    """

    def __init__(self, url: str, *, timeout: int = 10) -> None:
        self._url = url
        self._timeout = timeout

    def send(self, alert: Alert) -> None:
        payload = {
            "text": alert.message,
            "level": alert.level,
            "order_id": alert.order_id,
            "token_id": alert.token_id,
            "source": "polymarket-orders",
        }
        req = urllib.request.Request(
            self._url,
            data=json.dumps(payload).encode(),
            headers={"Content-Type": "application/json"},
            method="POST",
        )
        try:
            with urllib.request.urlopen(req, timeout=self._timeout):  # noqa: S310
                pass
        except OSError:
            logger.exception("Failed to send webhook alert for %s to %s", alert.order_id, self._url)


class AlertManager:
    """Dispatch alerts to registered sinks.

    A failing sink is logged and skipped; it never interrupts the caller,
    which is usually the monitoring loop.
    """

    def __init__(self) -> None:
        self._sinks: list[AlertSink] = []

    def register(self, sink: AlertSink) -> None:
        self._sinks.append(sink)

    def alert(self, alert: Alert) -> None:
        for sink in self._sinks:
            try:
                sink.send(alert)
            except Exception:
                logger.exception("Alert sink %s failed for %s", type(sink).__name__, alert.order_id)

    @property
    def sink_count(self) -> int:
        return len(self._sinks)
