"""
TCP transport CLI.

Run an echo listener, or dial one and exchange a message. Handy for
checking that two hosts can reach each other over a given multiaddr.

Usage::

    python -m lean_tcp listen /ip4/0.0.0.0/tcp/9000
    python -m lean_tcp dial /ip4/127.0.0.1/tcp/9000 --message hello
    python -m lean_tcp dial /ip4/127.0.0.1/tcp/9000/p2p/QmPeer... --timeout 5

Options:
    -v, --verbose   Enable debug logging
    --no-color      Disable colored logging output
"""

from __future__ import annotations

import argparse
import asyncio
import logging

from .config import DialOptions
from .connection import TcpConnection
from .errors import TransportConnectionError
from .transport import TcpTransport

logger = logging.getLogger(__name__)


LOG_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"
"""Line layout shared by the plain and colored formatters."""


class ColoredFormatter(logging.Formatter):
    """Formatter that tints each line by its level."""

    RESET = "\x1b[0m"

    LEVEL_COLORS = {
        logging.DEBUG: "\x1b[38;5;244m",
        logging.WARNING: "\x1b[38;5;220m",
        logging.ERROR: "\x1b[38;5;196m",
        logging.CRITICAL: "\x1b[38;5;196m",
    }

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        color = self.LEVEL_COLORS.get(record.levelno)
        return f"{color}{line}{self.RESET}" if color else line


def setup_logging(verbose: bool = False, no_color: bool = False) -> None:
    """Log to stderr at INFO, or DEBUG with --verbose."""
    formatter_cls = logging.Formatter if no_color else ColoredFormatter

    handler = logging.StreamHandler()
    handler.setFormatter(formatter_cls(LOG_FORMAT, datefmt="%H:%M:%S"))

    logging.basicConfig(level=logging.DEBUG if verbose else logging.INFO, handlers=[handler])


async def echo(conn: TcpConnection) -> None:
    """Write back everything received until the peer closes."""
    logger.info("Echoing for %s", conn.remote_addr)
    try:
        while data := await conn.read(4096):
            conn.write(data)
            await conn.drain()
    except ConnectionError as e:
        logger.warning("Connection to %s lost: %s", conn.remote_addr, e)
    finally:
        await conn.close()


async def run_listen(transport: TcpTransport, address: str) -> None:
    """Serve the echo handler until cancelled."""
    listener = transport.create_listener(echo)
    await listener.listen(address)
    try:
        await asyncio.Event().wait()
    finally:
        await listener.close()


async def run_dial(
    transport: TcpTransport,
    address: str,
    message: str,
    timeout_secs: float | None = None,
) -> bytes | None:
    """
    Dial an address, send a message and return the reply.

    Returns:
        The bytes echoed back, or None if the address is not dialable, the
        dial failed, or the peer closed before echoing the whole message.
    """
    addrs = transport.filter(address)
    if not addrs:
        logger.error("Not a dialable TCP multiaddr: %s", address)
        return None

    conn = transport.dial(addrs[0], DialOptions(timeout_secs=timeout_secs))
    try:
        await conn.wait_established()
    except TransportConnectionError as e:
        logger.error("Dial failed: %s", e)
        return None

    payload = message.encode()
    try:
        conn.write(payload)
        await conn.drain()
        reply = await conn.readexactly(len(payload))
    except (asyncio.IncompleteReadError, ConnectionError) as e:
        logger.error("Peer closed before echoing %d bytes: %r", len(payload), e)
        return None
    finally:
        await conn.close()

    logger.info("Received %r from %s", reply, conn.remote_addr)
    return reply


def build_parser() -> argparse.ArgumentParser:
    """Build the command line parser."""
    parser = argparse.ArgumentParser(
        prog="python -m lean_tcp",
        description="TCP transport echo tool",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable debug logging",
    )
    parser.add_argument(
        "--no-color",
        action="store_true",
        help="Disable colored logging output",
    )

    commands = parser.add_subparsers(dest="command", required=True)

    listen = commands.add_parser("listen", help="Run an echo listener")
    listen.add_argument("address", help="Multiaddr to listen on")

    dial = commands.add_parser("dial", help="Dial an address and send a message")
    dial.add_argument("address", help="Multiaddr to dial")
    dial.add_argument(
        "--message",
        default="ping",
        help="Message to send (default: ping)",
    )
    dial.add_argument(
        "--timeout",
        type=float,
        default=None,
        help="Connect timeout in seconds",
    )

    return parser


def main(argv: list[str] | None = None) -> int:
    """CLI entry point."""
    args = build_parser().parse_args(argv)

    setup_logging(args.verbose, args.no_color)

    transport = TcpTransport()

    try:
        if args.command == "listen":
            asyncio.run(run_listen(transport, args.address))
            return 0

        reply = asyncio.run(run_dial(transport, args.address, args.message, args.timeout))
        return 0 if reply is not None else 1
    except KeyboardInterrupt:
        logger.info("Shutting down...")
        return 0


if __name__ == "__main__":
    raise SystemExit(main())
