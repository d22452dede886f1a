"""Read-only CLOB order-book client.

Wraps the public (unauthenticated) endpoints of ``py-clob-client`` and turns
every transport failure into :class:`QuoteUnavailable` so callers never see a
stale or zero price.
"""

import logging
from typing import Any

from polymarket_orders.data.models import OrderBook
from polymarket_orders.errors import QuoteUnavailable

logger = logging.getLogger(__name__)

DEFAULT_HOST = "https://clob.polymarket.com"


class ClobBookClient:
    """Fetch order-book snapshots from the Polymarket CLOB.

    Every public method delegates to the underlying client through
    :meth:`_fetch_book` so that there is a single chokepoint that is easy to
    mock in tests.
    """

    def __init__(self, host: str = DEFAULT_HOST, *, client: Any | None = None) -> None:
        if client is None:
            try:
                from py_clob_client.client import ClobClient  # type: ignore[import-not-found]  # noqa: PLC0415
            except ImportError as exc:
                msg = "py-clob-client is required for order-book data: pip install py-clob-client"
                raise ImportError(msg) from exc
            client = ClobClient(host)
        self._client: Any = client

    def get_orderbook(self, token_id: str) -> OrderBook:
        """Return the current order book for a CLOB token."""
        raw = self._fetch_book(token_id)
        try:
            return OrderBook.from_api(token_id, raw)
        except (AttributeError, KeyError, TypeError, ValueError, ArithmeticError) as exc:
            logger.warning("Malformed order book for token %s: %s", token_id, exc)
            msg = f"Order book unavailable for token {token_id}: malformed response"
            raise QuoteUnavailable(msg) from exc

    def _fetch_book(self, token_id: str) -> Any:
        try:
            return self._client.get_order_book(token_id)
        except Exception as exc:
            logger.warning("Order book fetch failed for token %s: %s", token_id, exc)
            msg = f"Order book unavailable for token {token_id}: {exc}"
            raise QuoteUnavailable(msg) from exc
