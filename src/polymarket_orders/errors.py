"""Error taxonomy for order execution and conditional-order monitoring."""


class OrderError(Exception):
    """Base class for all order-engine failures.

    ``code`` is a stable machine-readable name surfaced in
    :class:`~polymarket_orders.orders.OrderResult.error_code`.
    """

    code = "OrderError"


class NotAuthenticated(OrderError):
    """No exchange session has been established."""

    code = "NotAuthenticated"

    def __init__(self, message: str = "Not authenticated. Connect a wallet and establish a trading session.") -> None:
        super().__init__(message)


class InvalidAmount(OrderError):
    """Amount or size failed local validation."""

    code = "InvalidAmount"


class InvalidSide(OrderError):
    """Side is neither BUY nor SELL."""

    code = "InvalidSide"


class InvalidPrice(OrderError):
    """Price failed local validation."""

    code = "InvalidPrice"


class NoLiquidity(OrderError):
    """The side of the book needed to price an order is empty."""

    code = "NoLiquidity"


class QuoteUnavailable(OrderError):
    """The order-book source could not be reached."""

    code = "QuoteUnavailable"


class ExchangeRejected(OrderError):
    """The exchange returned an error. The message is passed through verbatim."""

    code = "ExchangeRejected"


class SessionError(OrderError):
    """Establishing an exchange session failed."""

    code = "SessionError"
