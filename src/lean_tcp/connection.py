"""
TCP connection: an asyncio stream pair behind the DuplexStream interface.

Outbound connections exist before their socket does. The dialer hands the
TcpConnection to the caller immediately and attaches the reader/writer
pair once the connect succeeds. Every read waits for that moment, so no
data is ever observed before the dial's completion has been reported.

Inbound connections are built by the listener around an already accepted
socket and are established from the start.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

from multiaddr import Multiaddr

from .errors import TransportConnectionError

if TYPE_CHECKING:
    from .dialer import DialAttempt


class TcpConnection:
    """
    One TCP session to a remote peer.

    The connection owns its socket exclusively. Closing it releases the
    socket; there is no reconnection. A new dial or accept produces a new
    TcpConnection.
    """

    __slots__ = ("_observed_addr", "_attempt", "_reader", "_writer", "_closed")

    def __init__(
        self,
        observed_addr: Multiaddr,
        *,
        reader: asyncio.StreamReader | None = None,
        writer: asyncio.StreamWriter | None = None,
        attempt: DialAttempt | None = None,
    ) -> None:
        """
        Initialize the connection.

        Args:
            observed_addr: Address associated with this connection. For
                outbound connections this is the dialed multiaddr.
            reader: Stream reader, for already established sockets.
            writer: Stream writer, for already established sockets.
            attempt: The pending dial, for outbound connections.
        """
        self._observed_addr = observed_addr
        self._attempt = attempt
        self._reader = reader
        self._writer = writer
        self._closed = False

    def get_observed_address(self) -> Multiaddr:
        """
        Address associated with this connection's establishment.

        Never changes after construction. Outbound connections report the
        address that was dialed, not one reconstructed from the socket.
        """
        return self._observed_addr

    @property
    def remote_addr(self) -> str:
        """Observed address in multiaddr string format."""
        return str(self._observed_addr)

    @property
    def is_established(self) -> bool:
        """Whether the socket is connected and usable."""
        return self._writer is not None and not self._closed

    @property
    def is_closed(self) -> bool:
        """Whether close() has been called or the socket has been torn down."""
        return self._closed or (self._writer is not None and self._writer.is_closing())

    def _attach(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        """Install the stream pair once the dial has connected."""
        if self._writer is not None:
            raise TransportConnectionError("Connection already has a socket")
        self._reader = reader
        self._writer = writer

    async def wait_established(self) -> None:
        """
        Wait until the connection is usable.

        Raises:
            TransportConnectionError: If the dial failed, timed out, or the
                connection was closed.
        """
        if self._attempt is not None:
            await self._attempt.wait()
        if self._closed:
            raise TransportConnectionError("Connection is closed")

    async def read(self, n: int = -1) -> bytes:
        """
        Read up to n bytes from the socket.

        Args:
            n: Maximum bytes to read. -1 means read until EOF.

        Returns:
            Read data. Empty bytes indicates EOF.
        """
        await self.wait_established()
        assert self._reader is not None
        return await self._reader.read(n)

    async def readexactly(self, n: int) -> bytes:
        """
        Read exactly n bytes.

        Raises:
            asyncio.IncompleteReadError: If EOF arrives first.
        """
        await self.wait_established()
        assert self._reader is not None
        return await self._reader.readexactly(n)

    def write(self, data: bytes) -> None:
        """
        Buffer data for writing.

        Raises:
            TransportConnectionError: If the connection is closed or the
                dial has not completed yet.
        """
        if self._closed:
            raise TransportConnectionError("Connection is closed")
        if self._writer is None:
            raise TransportConnectionError("Connection is not established")
        self._writer.write(data)

    async def drain(self) -> None:
        """Wait for the transport's write buffer to drain (backpressure)."""
        await self.wait_established()
        assert self._writer is not None
        await self._writer.drain()

    async def close(self) -> None:
        """
        Close the connection and release the socket.

        Closing a connection whose dial is still pending aborts the dial.
        The dial then completes with a failure. Closing twice is safe.
        """
        if self._closed:
            return

        self._closed = True

        if self._attempt is not None and not self._attempt.completed:
            self._attempt.abort()

        if self._writer is not None:
            self._writer.close()
            try:
                await self._writer.wait_closed()
            except OSError:
                # The peer may have reset the socket already. It is gone either way.
                pass

    def __repr__(self) -> str:
        state = "closed" if self._closed else "open" if self._writer else "pending"
        return f"TcpConnection({self.remote_addr}, {state})"
