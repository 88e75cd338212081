"""Exception hierarchy for the TCP transport."""

from __future__ import annotations

from multiaddr import Multiaddr


class TransportConnectionError(Exception):
    """
    Base exception for all transport-level connection errors.

    Also raised directly for stream misuse, such as writing to a
    connection that is closed or not yet established.
    """


class ConnectTimeoutError(TransportConnectionError):
    """
    Raised when no connect signal arrives before the dial deadline.

    Attributes:
        address: The multiaddr that was being dialed.
    """

    def __init__(self, address: Multiaddr) -> None:
        self.address = address
        super().__init__("Timeout")


class ConnectFailureError(TransportConnectionError):
    """
    Raised when the socket layer fails to establish a connection.

    Covers refused, unreachable, reset, malformed addresses that slipped past
    the filter, and dials aborted by closing the connection.

    Attributes:
        address: The multiaddr that was being dialed.
        detail: Description of what went wrong.
    """

    def __init__(self, address: Multiaddr, detail: str) -> None:
        self.address = address
        self.detail = detail
        super().__init__(f"Failed to connect to {address}: {detail}")
