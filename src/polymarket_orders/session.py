"""Exchange session: signer, funding address and derived API credentials."""

import logging
import threading
from collections.abc import Callable
from typing import Any, Protocol

from polymarket_orders.errors import NotAuthenticated, SessionError

logger = logging.getLogger(__name__)

DEFAULT_HOST = "https://clob.polymarket.com"
DEFAULT_CHAIN_ID = 137


class Signer(Protocol):
    """Narrow signing capability bound to an authenticated user."""

    @property
    def address(self) -> str: ...

    def sign(self, message_hash: str) -> str: ...


class PrivateKeySigner:
    """Signer backed by a raw private key (EOA or proxy-wallet owner).

    Delegates to ``py_clob_client.signer.Signer``; the key is also what the
    CLOB client needs to sign orders, so it is exposed to the client factory.
    """

    def __init__(self, private_key: str, *, chain_id: int = DEFAULT_CHAIN_ID) -> None:
        try:
            from py_clob_client.signer import Signer as ClobSigner  # type: ignore[import-not-found]  # noqa: PLC0415
        except ImportError as exc:
            msg = "py-clob-client is required for live trading: pip install py-clob-client"
            raise ImportError(msg) from exc
        self._signer = ClobSigner(private_key, chain_id)
        self.private_key = private_key
        self.chain_id = chain_id

    @property
    def address(self) -> str:
        return str(self._signer.address())

    def sign(self, message_hash: str) -> str:
        return str(self._signer.sign(message_hash))


ClientFactory = Callable[[Signer, str], Any]


def clob_client_factory(host: str = DEFAULT_HOST, *, signature_type: int | None = None) -> ClientFactory:
    """Return a factory that builds an authenticated-capable py-clob-client.

    Signature type 0 is a plain EOA; 1 is a Magic/email proxy wallet. When
    not given it is inferred: a funding address different from the signer
    address means a proxy wallet.
    """

    def _factory(signer: Signer, funding_address: str) -> Any:
        from py_clob_client.client import ClobClient  # type: ignore[import-not-found]  # noqa: PLC0415

        private_key = getattr(signer, "private_key", None)
        if not private_key:
            msg = f"{type(signer).__name__} cannot be used with the CLOB client (no private key)"
            raise SessionError(msg)
        chain_id = getattr(signer, "chain_id", DEFAULT_CHAIN_ID)
        sig_type = signature_type
        if sig_type is None:
            sig_type = 0 if funding_address.lower() == signer.address.lower() else 1
        return ClobClient(
            host,
            key=private_key,
            chain_id=chain_id,
            signature_type=sig_type,
            funder=funding_address,
        )

    return _factory


class ExchangeSession:
    """Holds the authenticated client context all order submission needs.

    Establishing is idempotent for the same (signer address, funding
    address) pair: credential derivation costs a user-visible signature, so
    a repeat call is a no-op. A different pair fully replaces the prior
    session.
    """

    def __init__(self, client_factory: ClientFactory) -> None:
        self._client_factory = client_factory
        self._lock = threading.Lock()
        self._signer: Signer | None = None
        self._funding_address: str | None = None
        self._credentials: Any = None
        self._client: Any = None

    def establish(self, signer: Signer, funding_address: str) -> None:
        """Derive credentials and bind the session to ``signer`` and ``funding_address``.

        Raises :class:`SessionError` on failure, leaving no session behind.
        """
        if not funding_address:
            msg = "A funding address is required to establish a session"
            raise SessionError(msg)

        with self._lock:
            if self._client is not None and self._identity_matches(signer, funding_address):
                logger.debug("Session already established for %s", funding_address)
                return

            self._clear()
            try:
                client = self._client_factory(signer, funding_address)
                credentials = client.create_or_derive_api_creds()
                client.set_api_creds(credentials)
            except SessionError:
                raise
            except Exception as exc:
                logger.exception("Failed to establish exchange session for %s", funding_address)
                raise SessionError(str(exc)) from exc

            self._signer = signer
            self._funding_address = funding_address
            self._credentials = credentials
            self._client = client
        logger.info("Exchange session established (funder=%s)", funding_address)

    def is_established(self) -> bool:
        return self._client is not None

    def invalidate(self) -> None:
        """Forget the signer, funding address and credentials (logout)."""
        with self._lock:
            was_established = self._client is not None
            self._clear()
        if was_established:
            logger.info("Exchange session invalidated")

    @property
    def funding_address(self) -> str | None:
        return self._funding_address

    @property
    def client(self) -> Any:
        """The authenticated exchange client. Raises NotAuthenticated if absent."""
        client = self._client
        if client is None:
            raise NotAuthenticated
        return client

    def _identity_matches(self, signer: Signer, funding_address: str) -> bool:
        if self._signer is None or self._funding_address is None:
            return False
        return (
            self._signer.address.lower() == signer.address.lower()
            and self._funding_address.lower() == funding_address.lower()
        )

    def _clear(self) -> None:
        self._signer = None
        self._funding_address = None
        self._credentials = None
        self._client = None
