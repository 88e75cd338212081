"""
TCP transport facade.

TcpTransport is what a networking stack plugs in. It presents the same
three capabilities every transport offers (dial, create_listener, filter)
and delegates each of them:

    dial            -> dialer.dial
    create_listener -> listener.TcpListener
    filter          -> address.filter_multiaddrs

Apart from argument normalization it adds no logic of its own.
"""

from __future__ import annotations

import logging
from typing import Any, Iterable

from multiaddr import Multiaddr

from .address import AddressLike, filter_multiaddrs, to_multiaddr
from .config import DialOptions, TcpConfig
from .connection import TcpConnection
from .dialer import dial
from .listener import TcpListener
from .types import ConnectionHandler, DialCallback

logger = logging.getLogger(__name__)


def _noop_handler(conn: TcpConnection) -> None:
    """Default listener handler. Accepted connections are left to the caller."""


class TcpTransport:
    """
    Dial and accept TCP connections addressed by multiaddr.

    Usage:
        transport = TcpTransport()
        addrs = transport.filter(peer_addrs)
        conn = transport.dial(addrs[0], on_complete=lambda err: ...)
        await conn.wait_established()
        conn.write(b"hello")
    """

    def __init__(self, config: TcpConfig | None = None, log: logging.Logger | None = None):
        """
        Initialize the transport.

        Args:
            config: Optional transport configuration.
            log: Logger for dial and listener diagnostics.
        """
        self._config = config or TcpConfig()
        self._log = log or logger

    @property
    def config(self) -> TcpConfig:
        """Active transport configuration."""
        return self._config

    def dial(
        self,
        address: AddressLike,
        options: DialOptions | DialCallback | dict[str, Any] | None = None,
        on_complete: DialCallback | None = None,
    ) -> TcpConnection:
        """
        Dial a peer.

        Args:
            address: The multiaddr to connect to. Should have passed filter().
            options: Per-dial options. A callable here is taken as on_complete,
                so dial(addr, callback) works like dial(addr, None, callback).
                A mapping is validated into DialOptions.
            on_complete: Called exactly once with None on success or the
                error. Without it, failures are silent unless the caller
                awaits TcpConnection.wait_established().

        Returns:
            The connection, usable once the dial completes without error.

        Raises:
            ValueError: If address is a string that is not a multiaddr at all.
            pydantic.ValidationError: If options is not valid DialOptions.
        """
        if callable(options):
            on_complete = options
            options = None

        if options is None:
            options = DialOptions()
        elif not isinstance(options, DialOptions):
            options = DialOptions.model_validate(options)
        timeout_secs = options.timeout_secs or self._config.connect_timeout_secs

        return dial(
            to_multiaddr(address),
            on_complete,
            timeout_secs=timeout_secs,
            read_limit=self._config.read_limit,
            log=self._log,
        )

    def create_listener(
        self,
        options: object | ConnectionHandler | None = None,
        handler: ConnectionHandler | None = None,
    ) -> TcpListener:
        """
        Create a listener for inbound connections.

        Args:
            options: Reserved. A callable here is taken as the handler.
            handler: Called with each accepted connection. Defaults to a no-op.

        Returns:
            A listener; call listen() on it to start accepting.
        """
        if callable(options):
            handler = options

        return TcpListener(
            handler or _noop_handler,
            close_timeout_secs=self._config.close_timeout_secs,
            read_limit=self._config.read_limit,
            log=self._log,
        )

    def filter(self, addresses: AddressLike | Iterable[AddressLike]) -> list[Multiaddr]:
        """
        Keep the addresses this transport can dial.

        Accepts one address or many. Never raises: unparseable and
        non-TCP addresses are left out.
        """
        return filter_multiaddrs(addresses)
