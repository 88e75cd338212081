"""Tests for the TcpTransport facade and its configuration."""

from __future__ import annotations

import asyncio
from collections.abc import Callable

import pytest
from multiaddr import Multiaddr
from pydantic import ValidationError

from lean_tcp.config import (
    CLOSE_TIMEOUT_SECS,
    DEFAULT_CONNECT_TIMEOUT_SECS,
    DEFAULT_READ_LIMIT,
    DialOptions,
    TcpConfig,
)
from lean_tcp.connection import TcpConnection
from lean_tcp.errors import ConnectFailureError, ConnectTimeoutError
from lean_tcp.listener import TcpListener
from lean_tcp.transport import TcpTransport
from lean_tcp.types import Transport

ADDRESS = Multiaddr("/ip4/127.0.0.1/tcp/9000")


@pytest.fixture
def transport() -> TcpTransport:
    """Transport with no listener grace period."""
    return TcpTransport(TcpConfig(close_timeout_secs=0.0))


class TestTcpConfig:
    """Tests for the configuration models."""

    def test_defaults(self) -> None:
        """Defaults match the module constants."""
        config = TcpConfig()

        assert config.connect_timeout_secs == DEFAULT_CONNECT_TIMEOUT_SECS
        assert config.close_timeout_secs == CLOSE_TIMEOUT_SECS
        assert config.read_limit == DEFAULT_READ_LIMIT

    def test_frozen(self) -> None:
        """Configuration cannot change after construction."""
        config = TcpConfig()

        with pytest.raises(ValidationError):
            config.connect_timeout_secs = 1.0  # type: ignore[misc]

    def test_extra_fields_rejected(self) -> None:
        """Unknown options are errors, not silently ignored."""
        with pytest.raises(ValidationError):
            TcpConfig(keepalive=True)  # type: ignore[call-arg]

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"connect_timeout_secs": 0.0},
            {"connect_timeout_secs": -1.0},
            {"close_timeout_secs": -0.5},
            {"read_limit": 0},
        ],
    )
    def test_out_of_range_values_rejected(self, kwargs: dict[str, float]) -> None:
        """Timeouts and limits must be positive."""
        with pytest.raises(ValidationError):
            TcpConfig(**kwargs)

    def test_timeout_can_be_disabled(self) -> None:
        """None turns the connect deadline off."""
        assert TcpConfig(connect_timeout_secs=None).connect_timeout_secs is None

    def test_dial_options_reject_non_positive_timeout(self) -> None:
        """A per-dial timeout must be positive too."""
        with pytest.raises(ValidationError):
            DialOptions(timeout_secs=0.0)

    def test_strict_types(self) -> None:
        """Strings are not coerced into numbers."""
        with pytest.raises(ValidationError):
            TcpConfig(read_limit="1024")  # type: ignore[arg-type]


class TestTcpTransportInterface:
    """Tests for the transport surface."""

    def test_satisfies_transport_interface(self, transport: TcpTransport) -> None:
        """TcpTransport implements the Transport interface."""
        assert isinstance(transport, Transport)

    def test_default_config(self) -> None:
        """Without a config, defaults are used."""
        assert TcpTransport().config == TcpConfig()

    def test_filter_delegates(self, transport: TcpTransport, peer_id: str) -> None:
        """filter() keeps TCP addresses and drops the rest."""
        good = Multiaddr(f"/ip4/1.2.3.4/tcp/4001/p2p/{peer_id}")
        addrs = [good, Multiaddr("/ip4/1.2.3.4/udp/4001"), "garbage"]

        assert transport.filter(addrs) == [good]

    def test_filter_single_address(self, transport: TcpTransport) -> None:
        """filter() accepts one address on its own."""
        assert len(transport.filter("/ip4/1.2.3.4/tcp/4001")) == 1

    def test_create_listener_returns_listener(self, transport: TcpTransport) -> None:
        """A listener is created unbound."""
        listener = transport.create_listener()

        assert isinstance(listener, TcpListener)
        assert not listener.is_listening


class TestTcpTransportDial:
    """Tests for dial() argument handling."""

    def test_callable_in_options_slot(
        self, transport: TcpTransport, closed_port: int
    ) -> None:
        """dial(addr, callback) treats the callable as the completion callback."""

        async def run_test() -> list[Exception | None]:
            calls: list[Exception | None] = []
            conn = transport.dial(f"/ip4/127.0.0.1/tcp/{closed_port}", calls.append)

            with pytest.raises(ConnectFailureError):
                await conn.wait_established()
            return calls

        calls = asyncio.run(run_test())

        assert len(calls) == 1
        assert isinstance(calls[0], ConnectFailureError)

    def test_explicit_callback(self, transport: TcpTransport, closed_port: int) -> None:
        """dial(addr, None, callback) reports the same way."""

        async def run_test() -> list[Exception | None]:
            calls: list[Exception | None] = []
            conn = transport.dial(f"/ip4/127.0.0.1/tcp/{closed_port}", None, calls.append)

            with pytest.raises(ConnectFailureError):
                await conn.wait_established()
            return calls

        assert len(asyncio.run(run_test())) == 1

    def test_string_address_is_parsed(self, transport: TcpTransport) -> None:
        """Strings are accepted and become the observed address."""

        async def run_test() -> None:
            listener = transport.create_listener()
            await listener.listen("/ip4/127.0.0.1/tcp/0")

            conn = transport.dial(str(listener.get_addrs()[0]))
            await conn.wait_established()

            assert isinstance(conn.get_observed_address(), Multiaddr)
            assert conn.remote_addr == str(listener.get_addrs()[0])

            await conn.close()
            await listener.close()

        asyncio.run(run_test())

    def test_garbage_string_raises(self, transport: TcpTransport) -> None:
        """A string that is not a multiaddr at all is rejected up front."""

        async def run_test() -> None:
            with pytest.raises(ValueError, match="Invalid multiaddr"):
                transport.dial("definitely not an address")

        asyncio.run(run_test())

    def test_config_timeout_applies(self, stalled_connect: Callable[[], int]) -> None:
        """The configured deadline is used when no options are given."""

        async def run_test() -> None:
            transport = TcpTransport(TcpConfig(connect_timeout_secs=0.05))
            conn = transport.dial(ADDRESS)

            with pytest.raises(ConnectTimeoutError):
                await conn.wait_established()

        asyncio.run(run_test())

    def test_dial_options_override_config(self, stalled_connect: Callable[[], int]) -> None:
        """A per-dial timeout wins over the configured one."""

        async def run_test() -> None:
            transport = TcpTransport(TcpConfig(connect_timeout_secs=None))
            conn = transport.dial(ADDRESS, DialOptions(timeout_secs=0.05))

            with pytest.raises(ConnectTimeoutError):
                await asyncio.wait_for(conn.wait_established(), timeout=2.0)

        asyncio.run(run_test())

    def test_mapping_options_are_validated(self, stalled_connect: Callable[[], int]) -> None:
        """A plain mapping in the options slot is read as DialOptions."""

        async def run_test() -> None:
            transport = TcpTransport(TcpConfig(connect_timeout_secs=None))
            conn = transport.dial(ADDRESS, {"timeout_secs": 0.05})

            with pytest.raises(ConnectTimeoutError):
                await asyncio.wait_for(conn.wait_established(), timeout=2.0)

        asyncio.run(run_test())

    def test_unknown_options_rejected(self, transport: TcpTransport) -> None:
        """Options that DialOptions does not define fail validation before dialing."""

        async def run_test() -> None:
            with pytest.raises(ValidationError):
                transport.dial(ADDRESS, {"timeout": 5})

        asyncio.run(run_test())


class TestTcpTransportListen:
    """Tests for create_listener() argument handling."""

    def test_callable_in_options_slot(self, transport: TcpTransport) -> None:
        """create_listener(handler) treats the callable as the handler."""

        async def run_test() -> TcpConnection:
            accepted: asyncio.Queue[TcpConnection] = asyncio.Queue()
            listener = transport.create_listener(accepted.put_nowait)
            await listener.listen("/ip4/127.0.0.1/tcp/0")

            conn = transport.dial(listener.get_addrs()[0])
            inbound = await asyncio.wait_for(accepted.get(), timeout=1.0)

            await conn.close()
            await listener.close()
            return inbound

        inbound = asyncio.run(run_test())

        assert isinstance(inbound, TcpConnection)

    def test_explicit_handler(self, transport: TcpTransport) -> None:
        """create_listener(None, handler) delivers connections the same way."""

        async def run_test() -> bytes:
            async def greet(conn: TcpConnection) -> None:
                conn.write(b"hey")
                await conn.drain()
                await conn.close()

            listener = transport.create_listener(None, greet)
            await listener.listen("/ip4/127.0.0.1/tcp/0")

            conn = transport.dial(listener.get_addrs()[0])
            data = await conn.read()

            await conn.close()
            await listener.close()
            return data

        assert asyncio.run(run_test()) == b"hey"

    def test_default_handler_accepts(self, transport: TcpTransport) -> None:
        """Without a handler, connections are still accepted."""

        async def run_test() -> int:
            listener = transport.create_listener()
            await listener.listen("/ip4/127.0.0.1/tcp/0")

            conn = transport.dial(listener.get_addrs()[0])
            await conn.wait_established()
            await asyncio.sleep(0.01)
            count = len(listener.connections)

            await conn.close()
            await listener.close()
            return count

        assert asyncio.run(run_test()) == 1
