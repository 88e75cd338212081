"""
TCP transport for libp2p-style peer-to-peer stacks.

Peers are addressed by multiaddr rather than host:port, and connections are
exposed as plain duplex byte streams so that the layers above (security,
multiplexing, application protocols) never touch sockets directly.

Components:
    - address: multiaddr validation, filtering and host/port extraction
    - dialer: outbound connects with a deadline and exactly-once completion
    - connection: TcpConnection, the duplex stream handed to callers
    - listener: TcpListener, inbound connections over asyncio.start_server
    - transport: TcpTransport, the facade a networking stack plugs in
"""

from .address import (
    filter_multiaddrs,
    is_tcp_multiaddr,
    multiaddr_from_socket_address,
    strip_peer_id,
    to_connect_options,
)
from .config import DialOptions, TcpConfig
from .connection import TcpConnection
from .dialer import DialAttempt, dial
from .errors import ConnectFailureError, ConnectTimeoutError, TransportConnectionError
from .listener import TcpListener
from .transport import TcpTransport
from .types import ConnectionHandler, DialCallback, DuplexStream, Listener, Transport

__all__ = [
    # Facade
    "TcpTransport",
    "TcpConfig",
    "DialOptions",
    # Dialing
    "dial",
    "DialAttempt",
    # Connections and listeners
    "TcpConnection",
    "TcpListener",
    # Addresses
    "filter_multiaddrs",
    "is_tcp_multiaddr",
    "strip_peer_id",
    "to_connect_options",
    "multiaddr_from_socket_address",
    # Errors
    "TransportConnectionError",
    "ConnectTimeoutError",
    "ConnectFailureError",
    # Interfaces
    "DuplexStream",
    "Listener",
    "Transport",
    "DialCallback",
    "ConnectionHandler",
]
