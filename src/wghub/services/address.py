"""
Virtual address allocation inside a network block.

Address Layout (10.10.0.0/24 as example):
    10.10.0.0     network address       never allocated
    10.10.0.1     hub interface         never allocated
    10.10.0.2     reserved              never allocated
    10.10.0.3     first peer address
    ...
    10.10.0.254   last peer address
    10.10.0.255   broadcast             never allocated

The lowest free address always wins, so allocation is deterministic and
addresses freed by deleted peers are reused first.
"""

from __future__ import annotations

import ipaddress
from collections.abc import Iterable
from typing import TYPE_CHECKING

from wghub.exceptions import AddressSpaceExhausted, InvalidRequestError

if TYPE_CHECKING:
    from wghub.db.network import Network
    from wghub.db.store import Store

# Network address, hub address and one reserved address
RESERVED_LEADING_ADDRESSES = 3


def parse_block(cidr: str) -> ipaddress.IPv4Network | ipaddress.IPv6Network:
    """Parse an address block, tolerating host bits."""
    try:
        return ipaddress.ip_network(cidr.strip(), strict=False)
    except ValueError as e:
        raise InvalidRequestError(f"invalid CIDR '{cidr}': {e}") from e


def hub_address(cidr: str) -> str:
    """Address of the hub interface, with the block's prefix length."""
    block = parse_block(cidr)
    return f"{block.network_address + 1}/{block.prefixlen}"


def allocate_ip(cidr: str, allocated: Iterable[str]) -> str:
    """
    Return the lowest free peer address of a block.

    Args:
        cidr: Network block.
        allocated: Addresses already in use; unparsable entries are ignored.

    Raises:
        AddressSpaceExhausted: If every peer address is taken.
    """
    block = parse_block(cidr)

    taken: set[int] = set()
    for ip in allocated:
        try:
            taken.add(int(ipaddress.ip_address(ip.split("/")[0])))
        except ValueError:
            continue

    first = int(block.network_address) + RESERVED_LEADING_ADDRESSES
    last = int(block.broadcast_address) - 1
    candidate = first
    while candidate <= last:
        if candidate not in taken:
            return str(ipaddress.ip_address(candidate))
        candidate += 1

    raise AddressSpaceExhausted(str(block))


def allocate_for_network(store: Store, network: Network) -> str:
    """Allocate the next peer address of a stored network."""
    peers = store.list_peers(network.id)
    return allocate_ip(network.cidr, (p.virtual_ip for p in peers))


def in_block(cidr: str, ip: str) -> bool:
    """Check whether an address lies inside a block."""
    block = parse_block(cidr)
    try:
        addr = ipaddress.ip_address(ip)
    except ValueError:
        return False
    return addr.version == block.version and addr in block
