"""FastAPI HTTP API exposing the trading engine to a UI."""

from decimal import Decimal
from typing import Any, Literal

from pydantic import BaseModel

from polymarket_orders import __version__
from polymarket_orders.engine import TradingEngine
from polymarket_orders.errors import NotAuthenticated, OrderError, QuoteUnavailable
from polymarket_orders.orders import Side

_ERROR_STATUS: dict[type[OrderError], int] = {
    NotAuthenticated: 401,
    QuoteUnavailable: 503,
}


class MarketOrderBody(BaseModel):
    token_id: str
    side: Side
    amount: Decimal


class LimitOrderBody(BaseModel):
    token_id: str
    side: Side
    price: Decimal
    size: Decimal


class StopOrderBody(BaseModel):
    token_id: str
    side: Side
    trigger_price: Decimal
    amount: Decimal


def create_app(engine: TradingEngine) -> Any:
    """Create and return the FastAPI application.

    Args:
        engine: The trading engine whose operations the routes expose.

    Returns:
        A FastAPI application instance.
    """
    from fastapi import FastAPI, Request  # noqa: PLC0415
    from fastapi.responses import JSONResponse  # noqa: PLC0415

    app = FastAPI(title="Polymarket Orders", version=__version__)

    @app.exception_handler(OrderError)
    async def order_error_handler(_request: Request, exc: OrderError) -> JSONResponse:
        status = _ERROR_STATUS.get(type(exc), 400)
        return JSONResponse({"error": str(exc), "error_code": exc.code}, status_code=status)

    @app.get("/api/health")
    def api_health() -> JSONResponse:
        return JSONResponse({"status": "ok", "version": __version__})

    @app.get("/api/session")
    def api_session() -> JSONResponse:
        return JSONResponse(
            {
                "mode": engine.mode,
                "established": engine.session.is_established(),
                "funding_address": engine.session.funding_address,
            }
        )

    @app.get("/api/quote/{token_id}")
    def api_quote(token_id: str) -> JSONResponse:
        quote = engine.get_quote(token_id)
        return JSONResponse(
            {
                "token_id": quote.token_id,
                "best_bid": _decimal_str(quote.best_bid),
                "best_ask": _decimal_str(quote.best_ask),
            }
        )

    @app.post("/api/orders/market")
    def api_market_order(body: MarketOrderBody) -> JSONResponse:
        result = engine.place_market_order(body.token_id, body.side, body.amount)
        return JSONResponse(result.to_dict(), status_code=200 if result.success else 400)

    @app.post("/api/orders/limit")
    def api_limit_order(body: LimitOrderBody) -> JSONResponse:
        result = engine.place_limit_order(body.token_id, body.side, body.price, body.size)
        return JSONResponse(result.to_dict(), status_code=200 if result.success else 400)

    @app.delete("/api/orders/{order_id}")
    def api_cancel_order(order_id: str) -> JSONResponse:
        return JSONResponse({"order_id": order_id, "cancelled": engine.cancel_limit_order(order_id)})

    @app.post("/api/stop-orders")
    def api_create_stop_order(body: StopOrderBody) -> JSONResponse:
        order = engine.create_stop_order(body.token_id, body.side, body.trigger_price, body.amount)
        return JSONResponse(order.to_dict(), status_code=201)

    @app.get("/api/stop-orders")
    def api_stop_orders(status: Literal["pending", "all"] = "pending") -> JSONResponse:
        orders = engine.list_pending_stop_orders() if status == "pending" else engine.list_stop_orders()
        return JSONResponse([o.to_dict() for o in orders])

    @app.delete("/api/stop-orders/{order_id}")
    def api_cancel_stop_order(order_id: str) -> JSONResponse:
        return JSONResponse({"id": order_id, "cancelled": engine.cancel_stop_order(order_id)})

    @app.post("/api/stop-orders/check")
    def api_check_stop_orders() -> JSONResponse:
        result = engine.check_stop_orders()
        return JSONResponse(
            {
                "triggered": [o.to_dict() for o in result.triggered],
                "results": [r.to_dict() for r in result.results],
            }
        )

    @app.get("/api/monitoring")
    def api_monitoring() -> JSONResponse:
        return JSONResponse(_monitoring_state(engine))

    @app.post("/api/monitoring/start")
    def api_start_monitoring() -> JSONResponse:
        engine.start_monitoring()
        return JSONResponse(_monitoring_state(engine))

    @app.post("/api/monitoring/stop")
    def api_stop_monitoring() -> JSONResponse:
        engine.stop_monitoring()
        return JSONResponse(_monitoring_state(engine))

    return app


def _monitoring_state(engine: TradingEngine) -> dict[str, Any]:
    return {
        "running": engine.is_monitoring,
        "interval": engine.monitor.interval,
        "passes": engine.monitor.passes,
    }


def _decimal_str(value: Decimal | None) -> str | None:
    return str(value) if value is not None else None
