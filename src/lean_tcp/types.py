"""
Abstract interfaces shared by every transport.

A peer-to-peer stack swaps transports freely (TCP today, something else
tomorrow). It can only do that if each transport exposes the same surface:
dial, listen, filter, and connections that behave like plain duplex byte
streams. These Protocol classes pin that surface down.

The runtime_checkable decorator allows isinstance() checks, which is
useful for validation and testing.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Awaitable, Callable, Iterable, Protocol, runtime_checkable

from multiaddr import Multiaddr

if TYPE_CHECKING:
    from .connection import TcpConnection

DialCallback = Callable[[Exception | None], None]
"""Completion callback of a dial. Receives None on success, the error otherwise."""

ConnectionHandler = Callable[["TcpConnection"], Awaitable[None] | None]
"""Called by a listener with each accepted connection. May be sync or async."""


@runtime_checkable
class DuplexStream(Protocol):
    """
    A bidirectional byte stream.

    This is everything upper layers may assume about a raw connection:
    bytes in, bytes out, backpressure through drain(), and close.
    """

    async def read(self, n: int = -1) -> bytes:
        """
        Read up to n bytes. -1 reads until EOF.

        Empty bytes indicates EOF.
        """
        ...

    async def readexactly(self, n: int) -> bytes:
        """Read exactly n bytes or raise asyncio.IncompleteReadError."""
        ...

    def write(self, data: bytes) -> None:
        """Buffer data for writing."""
        ...

    async def drain(self) -> None:
        """Wait until the write buffer is below the transport's high-water mark."""
        ...

    async def close(self) -> None:
        """Close the stream and release the socket."""
        ...


@runtime_checkable
class Listener(Protocol):
    """Accepts inbound connections and hands them to a handler."""

    async def listen(self, address: Multiaddr | str) -> None:
        """Start accepting connections on the given address."""
        ...

    def get_addrs(self) -> list[Multiaddr]:
        """Addresses the listener is actually bound to."""
        ...

    async def close(self) -> None:
        """Stop accepting and close tracked connections."""
        ...


@runtime_checkable
class Transport(Protocol):
    """The capability surface a networking stack expects from any transport."""

    def dial(
        self,
        address: Multiaddr | str,
        options: Any = None,
        on_complete: DialCallback | None = None,
    ) -> DuplexStream:
        """Open an outbound connection. Completion is reported via on_complete."""
        ...

    def create_listener(
        self,
        options: Any = None,
        handler: ConnectionHandler | None = None,
    ) -> Listener:
        """Create a listener delivering connections to handler."""
        ...

    def filter(
        self,
        addresses: Multiaddr | str | Iterable[Multiaddr | str],
    ) -> list[Multiaddr]:
        """Keep only addresses this transport can dial."""
        ...
