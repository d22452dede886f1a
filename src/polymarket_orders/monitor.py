"""Conditional order monitor: polls quotes and promotes stop orders to market orders."""

import logging
import threading
from dataclasses import dataclass, field

from polymarket_orders.errors import QuoteUnavailable
from polymarket_orders.execution.market import MarketOrderExecutor
from polymarket_orders.monitoring.alerts import Alert, AlertManager, interrupted_alert, stop_order_alert
from polymarket_orders.orders import ConditionalOrder, MarketOrderRequest, OrderResult, OrderStatus, Side
from polymarket_orders.quotes import QuoteReader
from polymarket_orders.store import ConditionalOrderStore

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL = 5.0


@dataclass
class CheckResult:
    """Orders promoted in one pass, with the matching execution results (same order)."""

    triggered: list[ConditionalOrder] = field(default_factory=list)
    results: list[OrderResult] = field(default_factory=list)


class ConditionalOrderMonitor:
    """Evaluate PENDING stop orders against live quotes.

    Each call to :meth:`check_all` is one pass. Passes never overlap: a
    second caller waits for the pass in flight. :meth:`start` runs passes
    on a background thread every ``interval`` seconds until :meth:`stop`.
    """

    def __init__(
        self,
        store: ConditionalOrderStore,
        quotes: QuoteReader,
        executor: MarketOrderExecutor,
        *,
        interval: float = DEFAULT_INTERVAL,
        alerts: AlertManager | None = None,
    ) -> None:
        self._store = store
        self._quotes = quotes
        self._executor = executor
        self._interval = interval
        self._alerts = alerts
        self._pass_lock = threading.Lock()
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None
        self._passes = 0

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def check_all(self) -> CheckResult:
        """Run one evaluation pass over all PENDING orders.

        A quote failure leaves that order PENDING for the next pass; an
        execution failure marks it FAILED. Neither affects other orders.
        """
        result = CheckResult()
        with self._pass_lock:
            for order in self._store.list_pending():
                try:
                    outcome = self._check_order(order)
                except Exception:
                    logger.exception("Error checking stop order %s", order.id)
                    continue
                if outcome is not None:
                    result.triggered.append(outcome[0])
                    result.results.append(outcome[1])
            self._passes += 1
        return result

    def recover(self) -> list[ConditionalOrder]:
        """Fail orders left IN_PROGRESS by a process that died mid-execution.

        Runs under the pass lock so it never sees an order this monitor is
        executing. Each recovered order raises an alert.
        """
        with self._pass_lock:
            interrupted = self._store.fail_interrupted()
        for order in interrupted:
            self._send(interrupted_alert(order))
        return interrupted

    def start(self) -> None:
        """Start monitoring on a background thread. No-op if already running.

        If a previous :meth:`stop` timed out, waits for that thread to finish
        its pass before starting a new one.
        """
        thread = self._thread
        if thread is not None and thread.is_alive():
            if not self._stop.is_set():
                return
            logger.info("Waiting for the previous monitoring thread to finish its pass")
            thread.join()
        self.recover()
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, name="stop-order-monitor", daemon=True)
        self._thread.start()
        logger.info("Stop order monitoring started (every %.1fs)", self._interval)

    def stop(self, timeout: float | None = 30.0) -> None:
        """Stop after the pass in flight, if any, completes. PENDING orders stay PENDING.

        If the pass is still running when ``timeout`` expires the thread is
        kept, so :attr:`is_running` stays True until it exits.
        """
        self._stop.set()
        thread = self._thread
        if thread is None:
            return
        thread.join(timeout=timeout)
        if thread.is_alive():
            logger.warning("Stop order monitor did not stop within %ss; a pass is still running", timeout)
            return
        self._thread = None
        logger.info("Stop order monitoring stopped")

    def run_forever(self, *, max_passes: int | None = None) -> None:
        """Run passes in the calling thread until stopped (or ``max_passes`` reached)."""
        self.recover()
        self._stop.clear()
        passes = 0
        while not self._stop.is_set():
            self._safe_pass()
            passes += 1
            if max_passes is not None and passes >= max_passes:
                break
            if self._stop.wait(self._interval):
                break

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    @property
    def interval(self) -> float:
        return self._interval

    @property
    def passes(self) -> int:
        """Number of completed passes since construction."""
        return self._passes

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _run(self) -> None:
        while not self._stop.is_set():
            self._safe_pass()
            if self._stop.wait(self._interval):
                break

    def _safe_pass(self) -> None:
        try:
            result = self.check_all()
        except Exception:
            logger.exception("Stop order monitoring pass failed")
            return
        if result.triggered:
            logger.info("Monitoring pass promoted %d stop order(s)", len(result.triggered))

    def _check_order(self, order: ConditionalOrder) -> tuple[ConditionalOrder, OrderResult] | None:
        try:
            quote = self._quotes.get_quote(order.token_id)
        except QuoteUnavailable as exc:
            logger.warning("Cannot fetch quote for stop order %s (token %s): %s", order.id, order.token_id, exc)
            return None

        # Compare against the price the market order would execute at.
        price = quote.best_ask if order.side == Side.BUY else quote.best_bid
        if price is None:
            logger.debug("No %s price for stop order %s", "ask" if order.side == Side.BUY else "bid", order.id)
            return None
        if not order.is_triggered_by(price):
            return None

        if not self._store.claim(order.id):
            logger.info("Stop order %s is no longer pending; skipping", order.id)
            return None

        logger.info("Stop order %s triggered at price %s", order.id, price)
        result = self._promote(order)
        status = OrderStatus.TRIGGERED if result.success else OrderStatus.FAILED
        self._store.set_status(order.id, status, order_id_on_exchange=result.order_id, error=result.error)
        self._notify(order, result)
        return self._store.get(order.id) or order, result

    def _promote(self, order: ConditionalOrder) -> OrderResult:
        request = MarketOrderRequest(token_id=order.token_id, side=order.side, amount=order.amount)
        try:
            return self._executor.execute(request)
        except Exception as exc:
            logger.exception("Market order for stop order %s raised", order.id)
            return OrderResult(success=False, error=str(exc), error_code="ExchangeRejected")

    def _notify(self, order: ConditionalOrder, result: OrderResult) -> None:
        self._send(stop_order_alert(order, result))

    def _send(self, alert: Alert) -> None:
        if self._alerts is not None:
            self._alerts.alert(alert)
