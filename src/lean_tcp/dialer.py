"""
Outbound TCP connection establishment.

A dial produces three kinds of events: the socket connects, the socket
fails, or the deadline passes. More than one of them can fire for the same
attempt (a deadline racing a late connect, an error queued right after a
success). Callers must see exactly one outcome.

DialAttempt is the one-shot gate all three events feed into. The first
event to arrive completes the attempt; every later event is a no-op. The
outcome is delivered twice over the same gate:

    - the on_complete callback, fired exactly once
    - DialAttempt.wait(), an awaitable that returns or raises the outcome

dial() returns the TcpConnection synchronously, before the socket exists.
The connection becomes usable once the attempt completes without error.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field

from multiaddr import Multiaddr

from .address import to_connect_options
from .config import DEFAULT_CONNECT_TIMEOUT_SECS, DEFAULT_READ_LIMIT
from .connection import TcpConnection
from .errors import ConnectFailureError, ConnectTimeoutError
from .types import DialCallback

logger = logging.getLogger(__name__)


def _noop(error: Exception | None) -> None:
    """Default completion callback. Callers that pass none observe nothing."""


@dataclass(slots=True)
class DialAttempt:
    """
    State of one outbound connection establishment.

    Lives on a single event loop, so no locking is needed: handlers never
    run concurrently, and the completed flag is set in the same step that
    fires the callback.
    """

    address: Multiaddr
    """The multiaddr being dialed."""

    on_complete: DialCallback = _noop
    """Caller's completion callback. Fired exactly once."""

    log: logging.Logger = logger
    """Logger for dial diagnostics."""

    completed: bool = False
    """Whether an outcome has been delivered."""

    error: Exception | None = None
    """The delivered error. None after a successful connect."""

    timeout_handle: asyncio.TimerHandle | None = None
    """Pending deadline, cancelled on completion."""

    connect_task: asyncio.Task[None] | None = None
    """Task running the socket connect."""

    _done: asyncio.Event = field(default_factory=asyncio.Event)
    """Set on completion. Backs wait()."""

    def on_timeout(self) -> None:
        """Deadline passed. Treated as a connection failure."""
        if self.completed:
            return

        self.log.debug("Dial to %s timed out", self.address)
        self.on_error(ConnectTimeoutError(self.address))

        # Nobody will use this socket anymore.
        self._cancel_connect()

    def on_error(self, error: Exception) -> None:
        """The socket failed. Only the first outcome counts."""
        if self.completed:
            self.log.debug("Ignoring late error for dial to %s: %s", self.address, error)
            return
        self._complete(error)

    def on_connect(self) -> None:
        """The socket connected. A stale error after this point is ignored."""
        if self.completed:
            self.log.debug("Ignoring late connect for dial to %s", self.address)
            return
        self._complete(None)

    def abort(self) -> None:
        """Abandon the dial. Completes it with a failure and releases the socket."""
        if self.completed:
            return
        self.on_error(ConnectFailureError(self.address, "Dial aborted"))
        self._cancel_connect()

    async def wait(self) -> None:
        """
        Wait for the outcome.

        Raises:
            ConnectTimeoutError: If the deadline passed first.
            ConnectFailureError: If the socket failed or the dial was aborted.
        """
        await self._done.wait()
        if self.error is not None:
            raise self.error

    def _complete(self, error: Exception | None) -> None:
        self.completed = True
        self.error = error

        if self.timeout_handle is not None:
            self.timeout_handle.cancel()
            self.timeout_handle = None

        self._done.set()
        self.on_complete(error)

    def _cancel_connect(self) -> None:
        if self.connect_task is not None and not self.connect_task.done():
            self.connect_task.cancel()


def dial(
    address: Multiaddr,
    on_complete: DialCallback | None = None,
    *,
    timeout_secs: float | None = DEFAULT_CONNECT_TIMEOUT_SECS,
    read_limit: int = DEFAULT_READ_LIMIT,
    log: logging.Logger = logger,
) -> TcpConnection:
    """
    Start connecting to a TCP multiaddr.

    Must be called from a coroutine (needs the running event loop). The
    address is expected to have passed the filter already and is not
    re-validated: an address without host or port fails like any other
    socket error, through on_complete.

    Args:
        address: Address like /ip4/127.0.0.1/tcp/9000.
        on_complete: Called exactly once with None on success or the error.
            Defaults to a no-op; use TcpConnection.wait_established() to
            observe the outcome without a callback.
        timeout_secs: Connect deadline. None disables it.
        read_limit: Buffer limit of the connection's StreamReader.
        log: Logger for dial diagnostics.

    Returns:
        The connection. Do not use its stream before the dial completes
        without error.
    """
    loop = asyncio.get_running_loop()

    attempt = DialAttempt(address=address, on_complete=on_complete or _noop, log=log)
    connection = TcpConnection(address, attempt=attempt)

    try:
        host, port = to_connect_options(address)
    except ValueError as e:
        # Deliver on the next loop iteration so the caller holds the connection first.
        log.debug("Cannot dial %s: %s", address, e)
        loop.call_soon(attempt.on_error, ConnectFailureError(address, str(e)))
        return connection

    log.debug("Connecting to %s %s", host, port)

    if timeout_secs is not None:
        attempt.timeout_handle = loop.call_later(timeout_secs, attempt.on_timeout)

    attempt.connect_task = loop.create_task(_connect(connection, attempt, host, port, read_limit))

    return connection


async def _connect(
    connection: TcpConnection,
    attempt: DialAttempt,
    host: str,
    port: int,
    read_limit: int,
) -> None:
    """Open the socket and feed the outcome into the attempt."""
    loop = asyncio.get_running_loop()

    # Same wiring as asyncio.open_connection, kept explicit so the
    # protocol exists before the connect starts.
    reader = asyncio.StreamReader(limit=read_limit, loop=loop)
    protocol = asyncio.StreamReaderProtocol(reader, loop=loop)

    try:
        transport, _ = await loop.create_connection(lambda: protocol, host, port)
    except OSError as e:
        attempt.log.debug("Dial to %s failed: %s", attempt.address, e)
        failure = ConnectFailureError(attempt.address, str(e) or type(e).__name__)
        failure.__cause__ = e
        attempt.on_error(failure)
        return

    writer = asyncio.StreamWriter(transport, protocol, reader, loop)

    if attempt.completed:
        # Timed out or aborted while the connect was in flight.
        writer.close()
        return

    connection._attach(reader, writer)
    attempt.on_connect()
    attempt.log.debug("Connected to %s", attempt.address)
