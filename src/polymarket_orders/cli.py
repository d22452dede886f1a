"""CLI entry point for polymarket-orders."""

import json
import logging
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Annotated

import typer

from polymarket_orders import __version__
from polymarket_orders.config import AppConfig, load_config
from polymarket_orders.engine import TradingEngine
from polymarket_orders.errors import OrderError
from polymarket_orders.monitoring.logging import setup_logging
from polymarket_orders.orders import ConditionalOrder, OrderResult, Side

logger = logging.getLogger(__name__)


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"polymarket-orders {__version__}")
        raise typer.Exit()


app = typer.Typer(name="polymarket-orders", help="Polymarket Orders: market, limit and stop orders on the CLOB")


@app.callback()
def main(
    version: Annotated[
        bool, typer.Option("--version", "-V", help="Show version and exit", callback=_version_callback, is_eager=True)
    ] = False,
) -> None:
    """Polymarket Orders: market, limit and stop orders on the CLOB."""


DEFAULT_CONFIG = Path("config.yaml")

ConfigOption = Annotated[Path, typer.Option("--config", "-c", help="Path to config.yaml")]
LiveOption = Annotated[bool, typer.Option("--live", help="Required confirmation flag for live trading mode")]
JsonOption = Annotated[bool, typer.Option("--json", help="Print machine-readable JSON")]


def _load_config(config_path: Path) -> AppConfig:
    """Load config from file, warning if the file does not exist."""
    if config_path.exists():
        return load_config(config_path)
    logger.warning("Config file %s not found, using defaults", config_path)
    return AppConfig()


def _setup_logging(cfg: AppConfig) -> None:
    """Configure logging based on monitoring config."""
    log_file = Path(cfg.monitoring.log_file) if cfg.monitoring.log_file else None
    setup_logging(structured=cfg.monitoring.structured_logging, log_file=log_file, level=cfg.monitoring.log_level)


def _require_live_flag(cfg: AppConfig, live: bool, command: str) -> None:
    if cfg.mode == "live" and not live:
        typer.echo(f"Live trading requires the --live flag: polymarket-orders {command} --live")
        raise typer.Exit(code=1)


@contextmanager
def _engine(config_path: Path, *, live: bool, command: str, authenticate: bool = True) -> Iterator[TradingEngine]:
    """Build an engine from config, optionally establishing a session from the environment."""
    cfg = _load_config(config_path)
    _setup_logging(cfg)
    _require_live_flag(cfg, live, command)
    engine = TradingEngine(cfg)
    try:
        if authenticate:
            try:
                engine.establish_session_from_env()
            except OrderError as exc:
                typer.echo(f"Could not establish a trading session: {exc}")
                raise typer.Exit(code=1) from exc
        yield engine
    finally:
        engine.close()


def _parse_side(value: str) -> Side:
    try:
        return Side(value.upper())
    except ValueError as exc:
        raise typer.BadParameter("Side must be BUY or SELL") from exc


def _echo_result(result: OrderResult, as_json: bool) -> None:
    if as_json:
        typer.echo(json.dumps(result.to_dict(), indent=2))
    elif result.success:
        typer.echo(f"Order placed: {result.order_id}")
        if result.executed_price is not None:
            typer.echo(f"  Price: {result.executed_price}")
        if result.executed_size is not None:
            typer.echo(f"  Size:  {result.executed_size}")
    else:
        typer.echo(f"Order failed [{result.error_code}]: {result.error}")
    if not result.success:
        raise typer.Exit(code=1)


def _format_stop_order(order: ConditionalOrder) -> str:
    line = (
        f"{order.id}  {order.status.value:<11} {order.side.value:<4} {order.amount} "
        f"when price {order.trigger_direction.value} {order.trigger_price}  token={order.token_id}"
    )
    if order.order_id:
        line += f"  order={order.order_id}"
    if order.error:
        line += f"  error={order.error}"
    return line


@app.command()
def quote(
    token_id: Annotated[str, typer.Argument(help="Outcome token ID")],
    config: ConfigOption = DEFAULT_CONFIG,
) -> None:
    """Show the best bid and ask for a token."""
    with _engine(config, live=True, command="quote", authenticate=False) as engine:
        try:
            q = engine.get_quote(token_id)
        except OrderError as exc:
            typer.echo(f"Quote unavailable: {exc}")
            raise typer.Exit(code=1) from exc
        typer.echo(f"Token:    {q.token_id}")
        typer.echo(f"Best bid: {q.best_bid if q.best_bid is not None else '-'}")
        typer.echo(f"Best ask: {q.best_ask if q.best_ask is not None else '-'}")
        if q.spread is not None:
            typer.echo(f"Spread:   {q.spread}")


@app.command()
def market(
    token_id: Annotated[str, typer.Argument(help="Outcome token ID")],
    side: Annotated[str, typer.Argument(help="BUY or SELL")],
    amount: Annotated[str, typer.Argument(help="USDC to spend (BUY) or shares to sell (SELL)")],
    config: ConfigOption = DEFAULT_CONFIG,
    live: LiveOption = False,
    as_json: JsonOption = False,
) -> None:
    """Place a market (fill-or-kill) order at the current top of book."""
    parsed = _parse_side(side)
    with _engine(config, live=live, command="market") as engine:
        result = engine.place_market_order(token_id, parsed, amount)
    _echo_result(result, as_json)


@app.command()
def limit(
    token_id: Annotated[str, typer.Argument(help="Outcome token ID")],
    side: Annotated[str, typer.Argument(help="BUY or SELL")],
    price: Annotated[str, typer.Argument(help="Limit price, strictly between 0 and 1")],
    size: Annotated[str, typer.Argument(help="Number of shares")],
    config: ConfigOption = DEFAULT_CONFIG,
    live: LiveOption = False,
    as_json: JsonOption = False,
) -> None:
    """Place a good-til-cancelled limit order."""
    parsed = _parse_side(side)
    with _engine(config, live=live, command="limit") as engine:
        result = engine.place_limit_order(token_id, parsed, price, size)
    _echo_result(result, as_json)


@app.command()
def cancel(
    order_id: Annotated[str, typer.Argument(help="Exchange order ID")],
    config: ConfigOption = DEFAULT_CONFIG,
    live: LiveOption = False,
) -> None:
    """Cancel a resting limit order on the exchange."""
    with _engine(config, live=live, command="cancel") as engine:
        cancelled = engine.cancel_limit_order(order_id)
    if not cancelled:
        typer.echo(f"Order {order_id} was not cancelled")
        raise typer.Exit(code=1)
    typer.echo(f"Order {order_id} cancelled")


@app.command()
def stop(
    token_id: Annotated[str, typer.Argument(help="Outcome token ID")],
    side: Annotated[str, typer.Argument(help="BUY (trigger above) or SELL (trigger below)")],
    trigger_price: Annotated[str, typer.Argument(help="Trigger price, strictly between 0 and 1")],
    amount: Annotated[str, typer.Argument(help="USDC to spend (BUY) or shares to sell (SELL)")],
    config: ConfigOption = DEFAULT_CONFIG,
    as_json: JsonOption = False,
) -> None:
    """Create a stop order. It executes while `polymarket-orders monitor` runs."""
    parsed = _parse_side(side)
    with _engine(config, live=True, command="stop", authenticate=False) as engine:
        try:
            order = engine.create_stop_order(token_id, parsed, trigger_price, amount)
        except OrderError as exc:
            typer.echo(f"Stop order rejected [{exc.code}]: {exc}")
            raise typer.Exit(code=1) from exc
    if as_json:
        typer.echo(json.dumps(order.to_dict(), indent=2))
    else:
        typer.echo(f"Stop order created: {order.id}")
        typer.echo(f"  {order.side.value} {order.amount} when price {order.trigger_direction.value} {order.trigger_price}")


@app.command("cancel-stop")
def cancel_stop(
    order_id: Annotated[str, typer.Argument(help="Stop order ID")],
    config: ConfigOption = DEFAULT_CONFIG,
) -> None:
    """Cancel a pending stop order."""
    with _engine(config, live=True, command="cancel-stop", authenticate=False) as engine:
        cancelled = engine.cancel_stop_order(order_id)
    if not cancelled:
        typer.echo(f"Stop order {order_id} is not pending")
        raise typer.Exit(code=1)
    typer.echo(f"Stop order {order_id} cancelled")


@app.command()
def orders(
    config: ConfigOption = DEFAULT_CONFIG,
    show_all: Annotated[bool, typer.Option("--all", help="Include cancelled, triggered and failed orders")] = False,
    as_json: JsonOption = False,
) -> None:
    """List stop orders."""
    with _engine(config, live=True, command="orders", authenticate=False) as engine:
        items = engine.list_stop_orders() if show_all else engine.list_pending_stop_orders()
    if as_json:
        typer.echo(json.dumps([o.to_dict() for o in items], indent=2))
        return
    if not items:
        typer.echo("No stop orders.")
        return
    for order in items:
        typer.echo(_format_stop_order(order))


@app.command()
def check(
    config: ConfigOption = DEFAULT_CONFIG,
    live: LiveOption = False,
) -> None:
    """Run one stop-order monitoring pass."""
    with _engine(config, live=live, command="check") as engine:
        result = engine.check_stop_orders()
    typer.echo(f"Triggered: {len(result.triggered)}")
    for order, outcome in zip(result.triggered, result.results, strict=True):
        typer.echo(_format_stop_order(order))
        if not outcome.success:
            typer.echo(f"  failed [{outcome.error_code}]: {outcome.error}")


@app.command()
def monitor(
    config: ConfigOption = DEFAULT_CONFIG,
    live: LiveOption = False,
    max_passes: Annotated[int | None, typer.Option("--max-passes", help="Stop after this many passes")] = None,
) -> None:
    """Monitor stop orders continuously until interrupted."""
    with _engine(config, live=live, command="monitor") as engine:
        pending = len(engine.list_pending_stop_orders())
        typer.echo(
            f"Monitoring {pending} pending stop order(s) in {engine.mode} mode "
            f"(every {engine.monitor.interval}s)"
        )
        try:
            engine.run_monitor(max_passes=max_passes)
        except KeyboardInterrupt:
            typer.echo("\nStopped.")


@app.command()
def serve(
    config: ConfigOption = DEFAULT_CONFIG,
    live: LiveOption = False,
    host: Annotated[str | None, typer.Option("--host", help="API bind address")] = None,
    port: Annotated[int | None, typer.Option("--port", help="API port")] = None,
) -> None:
    """Start the HTTP API with background stop-order monitoring."""
    with _engine(config, live=live, command="serve") as engine:
        cfg = engine.config
        resolved_host = host if host is not None else cfg.monitoring.dashboard_host
        resolved_port = port if port is not None else cfg.monitoring.dashboard_port
        try:
            import uvicorn  # noqa: PLC0415

            from polymarket_orders.dashboard.api import create_app  # noqa: PLC0415

            fastapi_app = create_app(engine)
        except ImportError as exc:
            typer.echo("The HTTP API requires optional dependencies: pip install polymarket-orders[dashboard]")
            raise typer.Exit(code=1) from exc
        if cfg.monitor.enabled:
            engine.start_monitoring()
        typer.echo(f"API starting on http://{resolved_host}:{resolved_port}")
        uvicorn.run(fastapi_app, host=resolved_host, port=resolved_port, log_level="info")
