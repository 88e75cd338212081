"""
Inbound TCP connections.

TcpListener binds an asyncio server to a multiaddr and wraps every accepted
socket in a TcpConnection. The observed address of an inbound connection
is the remote socket address, expressed as a multiaddr.

The listener keeps track of the connections it produced. Closing the
listener stops accepting immediately, gives open connections a short grace
period to finish, and then aborts whatever is left.
"""

from __future__ import annotations

import asyncio
import inspect
import logging

from multiaddr import Multiaddr

from .address import (
    AddressLike,
    multiaddr_from_socket_address,
    peer_id_suffix,
    to_connect_options,
    to_multiaddr,
)
from .config import CLOSE_TIMEOUT_SECS, DEFAULT_READ_LIMIT
from .connection import TcpConnection
from .errors import TransportConnectionError
from .types import ConnectionHandler

logger = logging.getLogger(__name__)


class TcpListener:
    """Accepts TCP connections on one multiaddr."""

    def __init__(
        self,
        handler: ConnectionHandler,
        *,
        close_timeout_secs: float = CLOSE_TIMEOUT_SECS,
        read_limit: int = DEFAULT_READ_LIMIT,
        log: logging.Logger = logger,
    ) -> None:
        """
        Initialize the listener.

        Args:
            handler: Called with each accepted connection. May be async.
            close_timeout_secs: Grace period for open connections on close().
            read_limit: Buffer limit of each connection's StreamReader.
            log: Logger for listener diagnostics.
        """
        self._handler = handler
        self._close_timeout_secs = close_timeout_secs
        self._read_limit = read_limit
        self._log = log

        self._server: asyncio.Server | None = None
        self._listen_addr: Multiaddr | None = None
        self._connections: set[TcpConnection] = set()

    @property
    def is_listening(self) -> bool:
        """Whether the server is bound and accepting."""
        return self._server is not None

    @property
    def connections(self) -> frozenset[TcpConnection]:
        """Connections accepted by this listener that are still open."""
        self._prune()
        return frozenset(self._connections)

    async def listen(self, address: AddressLike) -> None:
        """
        Bind and start accepting connections.

        Args:
            address: Address like /ip4/0.0.0.0/tcp/9000. Port 0 picks a free
                port; get_addrs() reports the one chosen.

        Raises:
            TransportConnectionError: If already listening.
            ValueError: If the address has no host or port.
            OSError: If the socket cannot be bound.
        """
        if self._server is not None:
            raise TransportConnectionError("Listener is already listening")

        ma = to_multiaddr(address)
        host, port = to_connect_options(ma)

        self._server = await asyncio.start_server(
            self._handle_client,
            host,
            port,
            limit=self._read_limit,
        )
        self._listen_addr = ma

        self._log.info("Listening on %s", ", ".join(str(a) for a in self.get_addrs()))

    def get_addrs(self) -> list[Multiaddr]:
        """
        Addresses the listener is bound to.

        A port of 0 in the listen address is replaced by the port the
        operating system picked. A peer identity in the listen address is
        carried over to every reported address.

        Raises:
            TransportConnectionError: If not listening.
        """
        if self._server is None or self._listen_addr is None:
            raise TransportConnectionError("Listener is not listening")

        suffix = peer_id_suffix(self._listen_addr)

        addrs = []
        for sock in self._server.sockets:
            ma = multiaddr_from_socket_address(sock.getsockname())
            if suffix is not None:
                ma = ma.encapsulate(suffix)
            addrs.append(ma)
        return addrs

    async def close(self) -> None:
        """
        Stop accepting and shut down tracked connections.

        Open connections get close_timeout_secs to finish on their own.
        Whatever is still open after that is closed. Closing twice is safe.
        """
        if self._server is None:
            return

        server = self._server
        self._server = None
        server.close()

        # The server finishes closing once every accepted socket is gone.
        try:
            await asyncio.wait_for(server.wait_closed(), timeout=self._close_timeout_secs)
        except asyncio.TimeoutError:
            self._log.debug("Grace period over, closing remaining connections")

        for conn in list(self._connections):
            await conn.close()
        self._connections.clear()

        await server.wait_closed()
        self._log.info("Listener on %s closed", self._listen_addr)

    async def _handle_client(
        self,
        reader: asyncio.StreamReader,
        writer: asyncio.StreamWriter,
    ) -> None:
        # Build multiaddr from socket info.
        #
        # The handler needs to know where the connection came from.
        peername = writer.get_extra_info("peername")
        try:
            remote_addr = multiaddr_from_socket_address(peername)
        except ValueError as e:
            self._log.warning("Rejecting connection from %s: %s", peername, e)
            writer.close()
            return

        conn = TcpConnection(remote_addr, reader=reader, writer=writer)

        self._prune()
        self._connections.add(conn)
        self._log.debug("Accepted connection from %s", remote_addr)

        try:
            result = self._handler(conn)
            if inspect.isawaitable(result):
                await result
        except Exception as e:
            self._log.warning("Connection handler failed for %s: %s", remote_addr, e)
            await conn.close()

    def _prune(self) -> None:
        """Forget connections that have already closed."""
        self._connections = {conn for conn in self._connections if not conn.is_closed}
