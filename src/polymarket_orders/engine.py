"""TradingEngine: wires quotes, session, executors, stop-order store and monitor."""

import logging
import os
from decimal import Decimal, InvalidOperation
from pathlib import Path

from polymarket_orders.config import AppConfig
from polymarket_orders.data.client import ClobBookClient
from polymarket_orders.data.feed import BookFeed, StreamingBookSource
from polymarket_orders.data.models import Quote
from polymarket_orders.data.provider import BookSource
from polymarket_orders.db import Database
from polymarket_orders.errors import (
    InvalidAmount,
    InvalidPrice,
    InvalidSide,
    NotAuthenticated,
    OrderError,
    SessionError,
)
from polymarket_orders.execution.base import Exchange
from polymarket_orders.execution.limit import LimitOrderSubmitter
from polymarket_orders.execution.market import MarketOrderExecutor
from polymarket_orders.execution.paper import PaperExchange, PaperSigner, paper_client_factory
from polymarket_orders.monitor import CheckResult, ConditionalOrderMonitor
from polymarket_orders.monitoring.alerts import AlertManager, ConsoleAlertSink, WebhookAlertSink
from polymarket_orders.orders import (
    ConditionalOrder,
    LimitOrderRequest,
    MarketOrderRequest,
    OrderResult,
    Side,
)
from polymarket_orders.quotes import QuoteReader
from polymarket_orders.session import ClientFactory, ExchangeSession, Signer, clob_client_factory
from polymarket_orders.storage import JsonFileKeyValueStore, KeyValueStore, MemoryKeyValueStore
from polymarket_orders.store import ConditionalOrderStore

logger = logging.getLogger(__name__)

Number = Decimal | str | int | float


class TradingEngine:
    """The operations a trading UI calls.

    Market and limit orders go straight to the exchange. Stop orders are
    stored locally and promoted to market orders by the monitor, which runs
    only while a session is established.
    """

    def __init__(
        self,
        config: AppConfig,
        *,
        book_source: BookSource | None = None,
        exchange: Exchange | None = None,
        backend: KeyValueStore | None = None,
        client_factory: ClientFactory | None = None,
    ) -> None:
        self._config = config
        self._db: Database | None = None

        rest_source = book_source if book_source is not None else ClobBookClient(config.exchange.host)
        self._streaming: StreamingBookSource | None = None
        self._feed: BookFeed | None = None
        if config.feed.enabled:
            self._streaming = StreamingBookSource(fallback=rest_source)
            self._feed = BookFeed(
                self._streaming,
                url=config.feed.ws_url,
                max_reconnect_attempts=config.feed.max_reconnect_attempts,
                reconnect_delay=config.feed.reconnect_delay,
            )
        self._quotes = QuoteReader(self._streaming or rest_source)

        self._session = ExchangeSession(client_factory or self._build_client_factory(config))
        self._exchange = exchange if exchange is not None else self._build_exchange(config)
        self._market = MarketOrderExecutor(self._session, self._quotes, self._exchange)
        self._limit = LimitOrderSubmitter(self._session, self._exchange)

        self._store = ConditionalOrderStore(
            backend if backend is not None else self._build_backend(config),
            key=config.storage.key,
        )
        self._alerts = self._build_alert_manager(config)
        self._monitor = ConditionalOrderMonitor(
            self._store,
            self._quotes,
            self._market,
            interval=config.monitor.poll_interval,
            alerts=self._alerts,
        )

    # ------------------------------------------------------------------
    # Session
    # ------------------------------------------------------------------

    def establish_session(self, signer: Signer, funding_address: str) -> None:
        """Bind the engine to an authenticated signer and funding address."""
        self._session.establish(signer, funding_address)

    def establish_session_from_env(self) -> None:
        """Establish a session from configuration and environment variables.

        Paper mode uses a local signer; live mode reads the private key and
        optional funder (proxy wallet) address from the environment.
        """
        if self._config.mode == "paper":
            signer: Signer = PaperSigner(self._config.paper.funding_address)
            self.establish_session(signer, self._config.paper.funding_address)
            return

        from polymarket_orders.session import PrivateKeySigner  # noqa: PLC0415

        private_key = os.environ.get(self._config.exchange.private_key_env)
        if not private_key:
            msg = f"{self._config.exchange.private_key_env} environment variable is required for live trading"
            raise SessionError(msg)
        signer = PrivateKeySigner(private_key, chain_id=self._config.exchange.chain_id)
        funder = os.environ.get(self._config.exchange.funder_env) or signer.address
        self.establish_session(signer, funder)

    def logout(self) -> None:
        """Stop monitoring and drop all session state."""
        self.stop_monitoring()
        self._session.invalidate()

    @property
    def session(self) -> ExchangeSession:
        return self._session

    # ------------------------------------------------------------------
    # Orders
    # ------------------------------------------------------------------

    def get_quote(self, token_id: str) -> Quote:
        return self._quotes.get_quote(token_id)

    def place_market_order(self, token_id: str, side: Side | str, amount: Number) -> OrderResult:
        try:
            request = MarketOrderRequest(token_id=token_id, side=_parse_side(side), amount=_to_decimal(amount))
        except OrderError as exc:
            return OrderResult(success=False, error=str(exc), error_code=exc.code)
        return self._market.execute(request)

    def place_limit_order(self, token_id: str, side: Side | str, price: Number, size: Number) -> OrderResult:
        try:
            request = LimitOrderRequest(
                token_id=token_id,
                side=_parse_side(side),
                price=_to_decimal(price, InvalidPrice),
                size=_to_decimal(size),
            )
        except OrderError as exc:
            return OrderResult(success=False, error=str(exc), error_code=exc.code)
        return self._limit.submit(request)

    def cancel_limit_order(self, order_id: str) -> bool:
        return self._limit.cancel(order_id)

    # ------------------------------------------------------------------
    # Stop orders
    # ------------------------------------------------------------------

    def create_stop_order(
        self, token_id: str, side: Side | str, trigger_price: Number, amount: Number
    ) -> ConditionalOrder:
        order = self._store.create(
            token_id=token_id,
            side=_parse_side(side),
            trigger_price=_to_decimal(trigger_price, InvalidPrice),
            amount=_to_decimal(amount),
        )
        if self._feed is not None:
            self._feed.subscribe([token_id])
        return order

    def cancel_stop_order(self, order_id: str) -> bool:
        return self._store.cancel(order_id)

    def list_pending_stop_orders(self) -> list[ConditionalOrder]:
        return self._store.list_pending()

    def list_stop_orders(self) -> list[ConditionalOrder]:
        return self._store.list_all()

    def check_stop_orders(self) -> CheckResult:
        """Run one monitoring pass now. Requires a session."""
        if not self._session.is_established():
            raise NotAuthenticated
        return self._monitor.check_all()

    def start_monitoring(self) -> None:
        """Start background stop-order monitoring. Requires a session."""
        if not self._session.is_established():
            raise NotAuthenticated
        if self._feed is not None:
            self._feed.subscribe(sorted({o.token_id for o in self._store.list_pending()}))
            self._feed.start()
        self._monitor.start()

    def stop_monitoring(self) -> None:
        """Stop background monitoring. PENDING stop orders stay PENDING."""
        self._monitor.stop()

    def run_monitor(self, *, max_passes: int | None = None) -> None:
        """Run the monitoring loop in the calling thread (blocking)."""
        if not self._session.is_established():
            raise NotAuthenticated
        if self._feed is not None:
            self._feed.subscribe(sorted({o.token_id for o in self._store.list_pending()}))
            self._feed.start()
        self._monitor.run_forever(max_passes=max_passes)

    @property
    def is_monitoring(self) -> bool:
        return self._monitor.is_running

    @property
    def monitor(self) -> ConditionalOrderMonitor:
        return self._monitor

    @property
    def alerts(self) -> AlertManager:
        return self._alerts

    @property
    def exchange(self) -> Exchange:
        return self._exchange

    @property
    def mode(self) -> str:
        return self._config.mode

    @property
    def config(self) -> AppConfig:
        return self._config

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def close(self) -> None:
        """Stop background threads and release storage."""
        self._monitor.stop()
        if self._feed is not None:
            self._feed.stop()
        if self._db is not None:
            self._db.close()
            self._db = None

    def __enter__(self) -> "TradingEngine":
        return self

    def __exit__(self, *_args: object) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Builders
    # ------------------------------------------------------------------

    @staticmethod
    def _build_client_factory(config: AppConfig) -> ClientFactory:
        if config.mode == "paper":
            return paper_client_factory
        return clob_client_factory(config.exchange.host, signature_type=config.exchange.signature_type)

    def _build_exchange(self, config: AppConfig) -> Exchange:
        if config.mode == "live":
            from polymarket_orders.execution.live import ClobExchange  # noqa: PLC0415

            return ClobExchange(self._session)
        return PaperExchange(self._quotes, starting_balance=config.paper.starting_balance)

    def _build_backend(self, config: AppConfig) -> KeyValueStore:
        if config.storage.backend == "memory":
            return MemoryKeyValueStore()
        if config.storage.backend == "sqlite":
            self._db = Database(Path(config.storage.path))
            return self._db
        return JsonFileKeyValueStore(Path(config.storage.path))

    @staticmethod
    def _build_alert_manager(config: AppConfig) -> AlertManager:
        manager = AlertManager()
        manager.register(ConsoleAlertSink())
        for url in config.monitoring.alert_webhooks:
            manager.register(WebhookAlertSink(url))
        return manager


def _parse_side(side: Side | str) -> Side:
    if isinstance(side, Side):
        return side
    try:
        return Side(str(side).upper())
    except ValueError as exc:
        msg = f"Side must be BUY or SELL (got {side!r})"
        raise InvalidSide(msg) from exc


def _to_decimal(value: Number, error: type[OrderError] = InvalidAmount) -> Decimal:
    try:
        number = value if isinstance(value, Decimal) else Decimal(str(value))
    except InvalidOperation as exc:
        msg = f"Not a number: {value!r}"
        raise error(msg) from exc
    if not number.is_finite():
        msg = f"Must be a finite number (got {value!r})"
        raise error(msg)
    return number
