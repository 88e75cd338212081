"""
Multiaddr handling for the TCP transport.

Multiaddrs are self-describing addresses. "/ip4/127.0.0.1/tcp/9000" means:
IPv4 address 127.0.0.1, TCP port 9000. The format composes, so the same
address may carry a trailing peer identity ("/p2p/QmPeer...") or describe a
relayed path ("/p2p/QmRelay/p2p-circuit/p2p/QmTarget").

This transport dials exactly one shape:

    /<family>/<host>/tcp/<port>[/p2p/<peer-id>]

where family is one of ip4, ip6, dns, dns4, dns6. Everything else is
filtered out before it reaches the dialer.

References:
    - https://github.com/multiformats/multiaddr
    - https://github.com/libp2p/specs/blob/master/addressing/README.md
"""

from __future__ import annotations

import ipaddress
import re
from typing import Final, Iterable

from multiaddr import Multiaddr
from multiaddr.exceptions import Error as MultiaddrError

TCP_PROTOCOL: Final = "tcp"
"""Protocol name of the TCP segment."""

FAMILY_PROTOCOLS: Final = frozenset({"ip4", "ip6", "dns", "dns4", "dns6"})
"""Protocol names allowed in front of the TCP segment."""

PEER_ID_PROTOCOLS: Final = ("p2p", "ipfs")
"""Peer identity protocol name and its legacy alias."""

CIRCUIT_PROTOCOL: Final = "p2p-circuit"
"""Relay marker. Circuit addresses are never directly dialable."""

_LEGACY_PEER_ID_SEGMENT: Final = re.compile(r"/ipfs/")
"""Legacy peer identity segment. Recent multiaddr releases only know /p2p/."""

AddressLike = Multiaddr | str
"""Anything the public API accepts as an address."""


def _parse(address: AddressLike) -> Multiaddr:
    try:
        return Multiaddr(address)
    except (MultiaddrError, ValueError, TypeError) as e:
        raise ValueError(f"Invalid multiaddr {address!r}: {e}") from e


def to_multiaddr(address: AddressLike) -> Multiaddr:
    """
    Coerce a string or Multiaddr into a Multiaddr.

    A string using the legacy /ipfs/ peer identity segment is read as /p2p/
    when the multiaddr codec does not know the alias.

    Raises:
        ValueError: If the input is not a valid multiaddr.
    """
    if isinstance(address, Multiaddr):
        return address
    try:
        return _parse(address)
    except ValueError:
        if not isinstance(address, str) or not _LEGACY_PEER_ID_SEGMENT.search(address):
            raise
    return _parse(_LEGACY_PEER_ID_SEGMENT.sub("/p2p/", address))


def protocol_names(ma: Multiaddr) -> list[str]:
    """Ordered protocol names of a multiaddr, without their values."""
    return [proto.name for proto in ma.protocols()]


def is_tcp_multiaddr(ma: Multiaddr) -> bool:
    """
    Check a multiaddr against the TCP grammar.

    The match is exact: a family segment followed by a tcp segment and
    nothing else. Values (host, port) are validated by the multiaddr codec
    when the address is parsed.
    """
    names = protocol_names(ma)
    return len(names) == 2 and names[0] in FAMILY_PROTOCOLS and names[1] == TCP_PROTOCOL


def strip_peer_id(ma: Multiaddr) -> Multiaddr:
    """
    Remove the peer identity segment, and anything after it.

    Returns the input unchanged when there is no identity segment.
    """
    for name in PEER_ID_PROTOCOLS:
        if name in protocol_names(ma):
            peer_id = ma.value_for_protocol(name)
            return ma.decapsulate(Multiaddr(f"/{name}/{peer_id}"))
    return ma


def peer_id_suffix(ma: Multiaddr) -> Multiaddr | None:
    """The trailing "/p2p/<peer-id>" segment of an address, if present."""
    for name in PEER_ID_PROTOCOLS:
        if name in protocol_names(ma):
            return Multiaddr(f"/p2p/{ma.value_for_protocol(name)}")
    return None


def _is_dialable(ma: Multiaddr) -> bool:
    names = protocol_names(ma)

    # Relayed addresses need a circuit relay transport, not a raw socket.
    if CIRCUIT_PROTOCOL in names:
        return False

    # The peer identity is verified by the security layer above us.
    #
    # For reachability only the network part matters, so drop it before
    # matching the grammar.
    if any(name in names for name in PEER_ID_PROTOCOLS):
        ma = strip_peer_id(ma)

    return is_tcp_multiaddr(ma)


def filter_multiaddrs(addresses: AddressLike | Iterable[AddressLike]) -> list[Multiaddr]:
    """
    Select the addresses this transport can dial.

    Args:
        addresses: A single address or any iterable of addresses. Strings
            are parsed; unparseable entries are dropped.

    Returns:
        Dialable addresses in input order. The returned values are the
        original addresses, including any peer identity segment. Empty
        means there is nothing to dial.
    """
    if isinstance(addresses, (Multiaddr, str)):
        addresses = [addresses]

    result: list[Multiaddr] = []
    for address in addresses:
        try:
            ma = to_multiaddr(address)
        except ValueError:
            continue
        if _is_dialable(ma):
            result.append(ma)
    return result


def to_connect_options(ma: Multiaddr) -> tuple[str, int]:
    """
    Extract the socket connect target from a multiaddr.

    Args:
        ma: Address like /ip4/127.0.0.1/tcp/9000.

    Returns:
        (host, port) tuple.

    Raises:
        ValueError: If the address has no host or no TCP port.
    """
    names = protocol_names(ma)

    host = None
    for name in names:
        if name in FAMILY_PROTOCOLS:
            host = ma.value_for_protocol(name)
            break
    if host is None:
        raise ValueError(f"No host in multiaddr: {ma}")

    if TCP_PROTOCOL not in names:
        raise ValueError(f"No port in multiaddr: {ma}")
    port = int(ma.value_for_protocol(TCP_PROTOCOL))

    return host, port


def multiaddr_from_socket_address(sockaddr: tuple) -> Multiaddr:
    """
    Build a TCP multiaddr from an asyncio peername or sockname.

    IPv4 sockets report (host, port); IPv6 sockets report
    (host, port, flowinfo, scope_id). Only host and port are used. A
    link-local IPv6 host carries its zone ("fe80::1%eth0"), which becomes
    an ip6zone segment in front of the address.

    Raises:
        ValueError: If the host is not an IP address.
    """
    host, port = sockaddr[0], sockaddr[1]
    if ipaddress.ip_address(host).version == 4:
        return to_multiaddr(f"/ip4/{host}/tcp/{port}")

    host, _, zone = host.partition("%")
    if zone:
        return to_multiaddr(f"/ip6zone/{zone}/ip6/{host}/tcp/{port}")
    return to_multiaddr(f"/ip6/{host}/tcp/{port}")
