"""Tests for the conditional order monitor."""

import threading
import time
from decimal import Decimal
from unittest.mock import MagicMock

import pytest

from polymarket_orders.data.models import OrderBook, OrderBookLevel
from polymarket_orders.errors import QuoteUnavailable
from polymarket_orders.execution.base import Exchange, ExchangeAck
from polymarket_orders.execution.market import MarketOrderExecutor
from polymarket_orders.execution.paper import PaperSigner, paper_client_factory
from polymarket_orders.monitor import ConditionalOrderMonitor
from polymarket_orders.monitoring.alerts import Alert, AlertManager, CallbackAlertSink
from polymarket_orders.orders import OrderResult, OrderStatus, Side
from polymarket_orders.quotes import QuoteReader
from polymarket_orders.session import ExchangeSession
from polymarket_orders.storage import MemoryKeyValueStore
from polymarket_orders.store import ConditionalOrderStore


class FakeBookSource:
    """Order books set per token; tokens listed in ``failing`` raise QuoteUnavailable."""

    def __init__(self) -> None:
        self.books: dict[str, OrderBook] = {}
        self.failing: set[str] = set()

    def set_quote(self, token_id: str, bid: str | None = None, ask: str | None = None) -> None:
        self.books[token_id] = OrderBook(
            token_id=token_id,
            bids=[OrderBookLevel(price=Decimal(bid), size=Decimal("100"))] if bid else [],
            asks=[OrderBookLevel(price=Decimal(ask), size=Decimal("100"))] if ask else [],
        )

    def get_orderbook(self, token_id: str) -> OrderBook:
        if token_id in self.failing:
            msg = f"source down for {token_id}"
            raise QuoteUnavailable(msg)
        return self.books.get(token_id, OrderBook(token_id=token_id))


class RecordingExchange(Exchange):
    def __init__(self) -> None:
        self.calls: list[tuple[str, Side, Decimal]] = []
        self.reject_with: Exception | None = None

    def submit_market(self, token_id: str, side: Side, amount: Decimal) -> ExchangeAck:
        if self.reject_with is not None:
            raise self.reject_with
        self.calls.append((token_id, side, amount))
        return ExchangeAck(order_id=f"0x{len(self.calls)}", status="matched")

    def submit_limit(self, token_id: str, side: Side, price: Decimal, size: Decimal) -> ExchangeAck:
        raise NotImplementedError


class Harness:
    def __init__(self, *, established: bool = True) -> None:
        self.books = FakeBookSource()
        self.exchange = RecordingExchange()
        self.session = ExchangeSession(paper_client_factory)
        if established:
            self.session.establish(PaperSigner(), "0xpaper")
        quotes = QuoteReader(self.books)
        self.store = ConditionalOrderStore(MemoryKeyValueStore())
        self.executor = MarketOrderExecutor(self.session, quotes, self.exchange)
        self.alerts: list[Alert] = []
        manager = AlertManager()
        manager.register(CallbackAlertSink(self.alerts.append))
        self.monitor = ConditionalOrderMonitor(self.store, quotes, self.executor, interval=0.01, alerts=manager)

    def create(self, side: Side, trigger: str, amount: str = "10", token_id: str = "tok1"):
        return self.store.create(token_id=token_id, side=side, trigger_price=Decimal(trigger), amount=Decimal(amount))


@pytest.fixture()
def harness() -> Harness:
    return Harness()


# ------------------------------------------------------------------
# Trigger evaluation
# ------------------------------------------------------------------


def test_buy_stop_triggers_when_ask_rises(harness):
    order = harness.create(Side.BUY, "0.60", amount="25")
    harness.books.set_quote("tok1", bid="0.53", ask="0.55")

    first = harness.monitor.check_all()
    assert first.triggered == []
    assert harness.store.get(order.id).status == OrderStatus.PENDING

    harness.books.set_quote("tok1", bid="0.59", ask="0.61")
    second = harness.monitor.check_all()

    assert [o.id for o in second.triggered] == [order.id]
    assert second.results[0].success
    assert harness.exchange.calls == [("tok1", Side.BUY, Decimal("25"))]
    stored = harness.store.get(order.id)
    assert stored.status == OrderStatus.TRIGGERED
    assert stored.order_id == "0x1"
    assert second.triggered[0].status == OrderStatus.TRIGGERED


def test_sell_stop_triggers_when_bid_falls(harness):
    order = harness.create(Side.SELL, "0.40")
    harness.books.set_quote("tok1", bid="0.50", ask="0.52")

    harness.monitor.check_all()
    assert harness.store.get(order.id).status == OrderStatus.PENDING

    harness.books.set_quote("tok1", bid="0.38", ask="0.41")
    result = harness.monitor.check_all()

    assert len(result.triggered) == 1
    assert harness.exchange.calls == [("tok1", Side.SELL, Decimal("10"))]
    assert harness.store.get(order.id).status == OrderStatus.TRIGGERED


def test_trigger_is_inclusive(harness):
    harness.create(Side.SELL, "0.40")
    harness.books.set_quote("tok1", bid="0.40", ask="0.45")
    assert len(harness.monitor.check_all().triggered) == 1


def test_compares_against_executing_side_of_book(harness):
    # A SELL stop compares the bid; a low ask must not trigger it.
    order = harness.create(Side.SELL, "0.40")
    harness.books.set_quote("tok1", bid="0.45", ask="0.39")
    harness.monitor.check_all()
    assert harness.store.get(order.id).status == OrderStatus.PENDING


def test_quote_failure_isolated_per_order(harness):
    failing = harness.create(Side.SELL, "0.40", token_id="tokA")
    working = harness.create(Side.SELL, "0.40", token_id="tokB")
    harness.books.failing.add("tokA")
    harness.books.set_quote("tokB", bid="0.30", ask="0.35")

    result = harness.monitor.check_all()

    assert [o.id for o in result.triggered] == [working.id]
    assert harness.store.get(failing.id).status == OrderStatus.PENDING
    assert harness.store.get(working.id).status == OrderStatus.TRIGGERED


def test_missing_price_leaves_order_pending(harness):
    order = harness.create(Side.BUY, "0.60")
    harness.books.set_quote("tok1", bid="0.70")
    assert harness.monitor.check_all().triggered == []
    assert harness.store.get(order.id).status == OrderStatus.PENDING


def test_execution_failure_marks_failed(harness):
    from polymarket_orders.errors import ExchangeRejected  # noqa: PLC0415

    order = harness.create(Side.SELL, "0.40")
    harness.books.set_quote("tok1", bid="0.35", ask="0.37")
    harness.exchange.reject_with = ExchangeRejected("not enough balance / allowance")

    result = harness.monitor.check_all()

    assert not result.results[0].success
    stored = harness.store.get(order.id)
    assert stored.status == OrderStatus.FAILED
    assert stored.error == "not enough balance / allowance"
    assert stored.triggered_at is not None


def test_executor_exception_marks_failed(harness):
    order = harness.create(Side.SELL, "0.40")
    harness.books.set_quote("tok1", bid="0.35", ask="0.37")
    harness.exchange.reject_with = RuntimeError("socket closed")

    result = harness.monitor.check_all()

    assert result.results[0].error_code == "ExchangeRejected"
    assert harness.store.get(order.id).status == OrderStatus.FAILED


def test_terminal_orders_are_not_re_executed(harness):
    order = harness.create(Side.SELL, "0.40")
    harness.books.set_quote("tok1", bid="0.35", ask="0.37")

    harness.monitor.check_all()
    harness.monitor.check_all()

    assert len(harness.exchange.calls) == 1
    assert harness.store.get(order.id).status == OrderStatus.TRIGGERED


def test_cancelled_orders_are_skipped(harness):
    order = harness.create(Side.SELL, "0.40")
    harness.store.cancel(order.id)
    harness.books.set_quote("tok1", bid="0.35", ask="0.37")

    assert harness.monitor.check_all().triggered == []
    assert harness.exchange.calls == []


def test_order_cancelled_after_listing_is_not_executed(harness, mocker):
    order = harness.create(Side.SELL, "0.40")
    harness.books.set_quote("tok1", bid="0.35", ask="0.37")
    original_claim = harness.store.claim

    def cancel_then_claim(order_id):
        harness.store.cancel(order_id)
        return original_claim(order_id)

    mocker.patch.object(harness.store, "claim", side_effect=cancel_then_claim)

    result = harness.monitor.check_all()

    assert result.triggered == []
    assert harness.exchange.calls == []
    assert harness.store.get(order.id).status == OrderStatus.CANCELLED


def test_alerts_on_trigger_and_failure(harness):
    harness.create(Side.SELL, "0.40", token_id="tokA")
    harness.books.set_quote("tokA", bid="0.35", ask="0.37")
    harness.monitor.check_all()

    harness.exchange.reject_with = RuntimeError("boom")
    harness.create(Side.SELL, "0.40", token_id="tokA")
    harness.monitor.check_all()

    assert len(harness.alerts) == 2
    assert "triggered" in harness.alerts[0].message
    assert harness.alerts[0].level == "info"
    assert harness.alerts[0].token_id == "tokA"
    assert "failed" in harness.alerts[1].message
    assert harness.alerts[1].level == "error"


def test_unauthenticated_execution_marks_failed():
    harness = Harness(established=False)
    order = harness.create(Side.SELL, "0.40")
    harness.books.set_quote("tok1", bid="0.35", ask="0.37")

    result = harness.monitor.check_all()

    assert result.results[0].error_code == "NotAuthenticated"
    assert harness.store.get(order.id).status == OrderStatus.FAILED


def test_pass_counter(harness):
    harness.monitor.check_all()
    harness.monitor.check_all()
    assert harness.monitor.passes == 2


# ------------------------------------------------------------------
# Concurrency and lifecycle
# ------------------------------------------------------------------


def test_concurrent_passes_execute_once(harness):
    harness.create(Side.SELL, "0.40")
    harness.books.set_quote("tok1", bid="0.35", ask="0.37")

    threads = [threading.Thread(target=harness.monitor.check_all) for _ in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len(harness.exchange.calls) == 1


def test_start_and_stop(harness):
    harness.create(Side.SELL, "0.40")
    harness.books.set_quote("tok1", bid="0.35", ask="0.37")

    harness.monitor.start()
    harness.monitor.start()
    deadline = time.monotonic() + 5
    while not harness.exchange.calls and time.monotonic() < deadline:
        time.sleep(0.01)
    harness.monitor.stop()

    assert not harness.monitor.is_running
    assert len(harness.exchange.calls) == 1


def test_stop_leaves_pending_orders_pending(harness):
    order = harness.create(Side.SELL, "0.40")
    harness.books.set_quote("tok1", bid="0.50", ask="0.52")

    harness.monitor.start()
    harness.monitor.stop()

    assert harness.store.get(order.id).status == OrderStatus.PENDING


def test_stop_timeout_keeps_thread_until_pass_finishes(harness, mocker):
    entered = threading.Event()
    release = threading.Event()

    def blocking_pass():
        entered.set()
        release.wait(5)

    mocker.patch.object(harness.monitor, "check_all", side_effect=blocking_pass)
    harness.monitor.start()
    assert entered.wait(5)

    harness.monitor.stop(timeout=0.01)
    assert harness.monitor.is_running

    release.set()
    harness.monitor.stop()
    assert not harness.monitor.is_running


def test_start_after_timed_out_stop_waits_for_old_thread(harness, mocker):
    entered = threading.Event()
    release = threading.Event()

    def blocking_pass():
        entered.set()
        release.wait(5)

    mocker.patch.object(harness.monitor, "check_all", side_effect=blocking_pass)
    harness.monitor.start()
    assert entered.wait(5)
    harness.monitor.stop(timeout=0.01)
    old_thread = harness.monitor._thread

    threading.Timer(0.05, release.set).start()
    harness.monitor.start()

    assert not old_thread.is_alive()
    assert harness.monitor._thread is not old_thread
    harness.monitor.stop()
    assert not harness.monitor.is_running


def test_run_forever_fails_interrupted_orders_first(harness):
    interrupted = harness.create(Side.SELL, "0.40")
    waiting = harness.create(Side.SELL, "0.40", token_id="tok2")
    harness.store.claim(interrupted.id)
    harness.books.set_quote("tok1", bid="0.35", ask="0.37")

    harness.monitor.run_forever(max_passes=1)

    stored = harness.store.get(interrupted.id)
    assert stored.status == OrderStatus.FAILED
    assert "Interrupted" in stored.error
    assert harness.exchange.calls == []
    assert harness.store.get(waiting.id).status == OrderStatus.PENDING
    assert len(harness.alerts) == 1
    assert harness.alerts[0].order_id == interrupted.id
    assert harness.alerts[0].level == "error"


def test_start_recovers_interrupted_orders(harness):
    order = harness.create(Side.BUY, "0.60")
    harness.store.claim(order.id)

    harness.monitor.start()
    harness.monitor.stop()

    assert harness.store.get(order.id).status == OrderStatus.FAILED
    assert [a.order_id for a in harness.alerts] == [order.id]


def test_run_forever_honours_max_passes(harness):
    harness.monitor.run_forever(max_passes=3)
    assert harness.monitor.passes == 3


def test_failing_pass_does_not_stop_loop(harness, mocker):
    mocker.patch.object(harness.store, "list_pending", side_effect=[RuntimeError("disk"), []])
    harness.monitor.run_forever(max_passes=2)
    assert harness.monitor.passes == 1


def test_executor_called_with_original_amount():
    harness = Harness()
    executor = MagicMock(spec=MarketOrderExecutor)
    executor.execute.return_value = OrderResult(success=True, order_id="0xabc")
    quotes = QuoteReader(harness.books)
    monitor = ConditionalOrderMonitor(harness.store, quotes, executor)
    harness.create(Side.BUY, "0.60", amount="42.5")
    harness.books.set_quote("tok1", bid="0.60", ask="0.61")

    monitor.check_all()

    (request,) = executor.execute.call_args.args
    assert request.amount == Decimal("42.5")
    assert request.side == Side.BUY
