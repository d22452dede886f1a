"""polymarket-orders: market, limit and client-side stop orders for the Polymarket CLOB."""

__version__ = "0.1.0"
