"""
Interface identity, listen port and block overlap for new networks.

Interface names are "<prefix><N>" (default prefix "wg"); a new network gets
one more than the highest N in use. Reserved names (the admin interface)
count as in use even before their network exists, so user networks start
at wg1. Listen ports are the lowest free port at or above the base port.
"""

from __future__ import annotations

import itertools
import re
from collections.abc import Iterable
from typing import TYPE_CHECKING

from wghub.exceptions import InvalidRequestError
from wghub.services.address import parse_block
from wghub.utils.logger import get_logger

if TYPE_CHECKING:
    from wghub.db.network import Network

logger = get_logger(__name__)

DEFAULT_BASE_PORT = 51820


def _parse_interface_index(name: str | None, prefix: str) -> int | None:
    """Extract N from "<prefix><N>", or None for any other name."""
    if not name:
        return None
    match = re.fullmatch(rf"{re.escape(prefix)}(\d+)", name)
    return int(match.group(1)) if match else None


def next_interface_name(
    names: Iterable[str | None],
    prefix: str = "wg",
    reserved: Iterable[str] = (),
) -> str:
    """Return the interface name after the highest one in use or reserved."""
    highest = -1
    for name in itertools.chain(names, reserved):
        index = _parse_interface_index(name, prefix)
        if index is not None and index > highest:
            highest = index
    return f"{prefix}{highest + 1}"


def next_listen_port(
    ports: Iterable[int | None], base_port: int = DEFAULT_BASE_PORT
) -> int:
    """Return the lowest port at or above the base that no network uses."""
    used = {p for p in ports if p is not None}
    port = base_port
    while port in used:
        port += 1
    return port


def assign_interface(
    existing: Iterable[Network],
    base_port: int = DEFAULT_BASE_PORT,
    prefix: str = "wg",
    reserved: Iterable[str] = (),
) -> tuple[str, int]:
    """
    Pick the interface name and listen port of a new network.

    Returns:
        (interface_name, listen_port)
    """
    existing = list(existing)
    name = next_interface_name(
        (n.interface_name for n in existing), prefix, reserved
    )
    port = next_listen_port((n.listen_port for n in existing), base_port)
    return name, port


def check_overlap(a: str, b: str) -> bool:
    """Two blocks overlap when either contains the other's first address."""
    block_a = parse_block(a)
    block_b = parse_block(b)
    if block_a.version != block_b.version:
        return False
    return block_a.network_address in block_b or block_b.network_address in block_a


def find_overlap(cidr: str, existing: Iterable[Network]) -> Network | None:
    """
    Return the first existing network whose block overlaps `cidr`.

    Existing networks with an unparsable block are skipped.
    """
    parse_block(cidr)
    for network in existing:
        try:
            if check_overlap(cidr, network.cidr):
                return network
        except InvalidRequestError:
            logger.warning(
                f"Skipping network {network.id} with invalid CIDR '{network.cidr}'"
            )
    return None
