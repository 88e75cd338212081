"""
Shared pytest fixtures for TCP transport tests.

Provides peer IDs, unused ports and a way to stall outbound connects.
"""

from __future__ import annotations

import asyncio
import socket
from collections.abc import Callable

import pytest

# -----------------------------------------------------------------------------
# Peer ID Fixtures
# -----------------------------------------------------------------------------


@pytest.fixture
def peer_id() -> str:
    """Primary test peer ID (base58 sha256 multihash)."""
    return "QmNnooDu7bfjPFoTZYxMNLWUQJyrVwtbZg5gBMjTezGAJN"


@pytest.fixture
def relay_peer_id() -> str:
    """Peer ID of a relay in circuit addresses."""
    return "QmaCpDMGvV2BGHeYERUEnRQAwe3N8SzbUtfsmvsqQLuvuJ"


# -----------------------------------------------------------------------------
# Socket Fixtures
# -----------------------------------------------------------------------------


@pytest.fixture
def closed_port() -> int:
    """A loopback port that nothing listens on."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


@pytest.fixture
def stalled_connect(monkeypatch: pytest.MonkeyPatch) -> Callable[[], int]:
    """
    Make every outbound connect hang forever.

    Lets timeout and abort paths run deterministically without depending on
    how the network treats unroutable addresses.

    Returns a callable reporting how many connects were started.
    """
    started = 0

    async def hang(self: asyncio.AbstractEventLoop, *args: object, **kwargs: object) -> None:
        nonlocal started
        started += 1
        await asyncio.Event().wait()

    monkeypatch.setattr(asyncio.BaseEventLoop, "create_connection", hang)

    return lambda: started
