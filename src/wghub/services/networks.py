"""
Network lifecycle: creation, deletion, admin bootstrap and startup bring-up.

Creation order:
    1. Reject overlapping blocks (OverlapConflict names the collider)
    2. Assign interface name and listen port
    3. Generate hub keys, persist the network
    4. Write the interface configuration, bring the interface up, register
       its tunnel control
Step 4 failures are logged; the stored network is the source of truth and
the next startup pass brings the interface up again.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from wghub.db.network import Network
from wghub.exceptions import (
    ControlError,
    InvalidRequestError,
    NotFound,
    OverlapConflict,
    ProtectedNetworkError,
)
from wghub.models.requests import NetworkCreateRequest
from wghub.services.address import hub_address, in_block, parse_block
from wghub.services.assigner import assign_interface, find_overlap, next_listen_port
from wghub.services.key_sync import repair_hub_keys
from wghub.tunnel.keys import (
    read_private_key,
    remove_interface_config,
    write_interface_config,
)
from wghub.utils.logger import get_logger

if TYPE_CHECKING:
    from wghub.context import HubContext

logger = get_logger(__name__)


# =============================================================================
# Queries
# =============================================================================


def list_networks(ctx: HubContext) -> list[Network]:
    return ctx.store.list_networks()


def get_network(ctx: HubContext, network_id: str) -> Network:
    network = ctx.store.get_network(network_id)
    if network is None:
        raise NotFound("network", network_id)
    return network


def is_admin_network(ctx: HubContext, network: Network) -> bool:
    return network.id == ctx.config.ADMIN_NETWORK_ID


# =============================================================================
# Interface Setup
# =============================================================================


def _activate(ctx: HubContext, network: Network) -> None:
    """Write the configuration and bring the interface up; failures are logged."""
    config_path = ctx.config.get_interface_config_path(network.interface_name)
    try:
        write_interface_config(
            config_path,
            network.hub_private_key,
            hub_address(network.cidr),
            network.listen_port,
        )
    except ControlError as e:
        logger.error(f"Failed to write configuration of {network.interface_name}: {e}")
        return

    control = ctx.registry.get(network.id)
    if control is None:
        logger.warning(f"No tunnel control for {network.interface_name}, not started")
        return

    try:
        control.bring_up()
    except ControlError as e:
        logger.warning(f"Failed to bring up {network.interface_name}: {e}")


def bring_up_networks(ctx: HubContext) -> int:
    """Bring up every stored network's interface; returns how many are up."""
    started = 0
    for network in ctx.store.list_networks():
        if not network.interface_name:
            continue
        control = ctx.registry.get(network.id)
        if control is None:
            continue
        try:
            control.bring_up()
            started += 1
        except ControlError as e:
            logger.error(f"Failed to bring up {network.interface_name}: {e}")
    logger.info(f"{started} network interface(s) up")
    return started


# =============================================================================
# Create / Delete
# =============================================================================


def create_network(ctx: HubContext, request: NetworkCreateRequest) -> Network:
    """
    Create a network and its interface.

    Raises:
        OverlapConflict: The block overlaps an existing network.
        InvalidRequestError: The block cannot be parsed.
    """
    cidr = str(parse_block(request.cidr))

    with ctx.allocation_lock:
        existing = ctx.store.list_networks()
        collider = find_overlap(cidr, existing)
        if collider is not None:
            raise OverlapConflict(cidr, collider.name, collider.cidr)

        interface_name, listen_port = assign_interface(
            existing,
            ctx.config.BASE_LISTEN_PORT,
            ctx.config.INTERFACE_PREFIX,
            reserved=(ctx.config.ADMIN_INTERFACE,),
        )
        private_key, public_key = ctx.keygen()
        network = ctx.store.create_network(
            name=request.name,
            cidr=cidr,
            interface_name=interface_name,
            listen_port=listen_port,
            hub_private_key=private_key,
            hub_public_key=public_key,
            hub_endpoint=ctx.config.get_server_endpoint(listen_port),
        )

    logger.info(
        f"Created network '{network.name}' ({cidr}) on {interface_name}:{listen_port}"
    )
    _activate(ctx, network)
    return network


def delete_network(ctx: HubContext, network_id: str) -> None:
    """
    Tear down a network's interface and delete it with all its peers.

    Raises:
        NotFound: Unknown network.
        ProtectedNetworkError: The admin network.
    """
    network = get_network(ctx, network_id)
    if is_admin_network(ctx, network):
        raise ProtectedNetworkError(network.id)

    peers = ctx.store.list_peers(network.id)

    if network.interface_name:
        control = ctx.registry.peek(network.id) or ctx.registry.get(network.id)
        if control is not None:
            control.bring_down()
        remove_interface_config(
            ctx.config.get_interface_config_path(network.interface_name)
        )
    ctx.store.delete_network(network.id)
    ctx.registry.unregister(network.id)

    for peer in peers:
        if peer.public_key:
            ctx.activity.forget(peer.public_key)
    logger.info(f"Deleted network '{network.name}' with {len(peers)} peer(s)")


# =============================================================================
# Admin Network Bootstrap
# =============================================================================


def _correct_admin_block(ctx: HubContext, network: Network, cidr: str) -> None:
    """
    Move the admin network to a new block.

    Raises:
        OverlapConflict: The block overlaps another network.
        InvalidRequestError: Stored peers would fall outside the block.
    """
    with ctx.allocation_lock:
        others = [n for n in ctx.store.list_networks() if n.id != network.id]
        collider = find_overlap(cidr, others)
        if collider is not None:
            raise OverlapConflict(cidr, collider.name, collider.cidr)

        stranded = [
            p.virtual_ip
            for p in ctx.store.list_peers(network.id)
            if not in_block(cidr, p.virtual_ip)
        ]
        if stranded:
            raise InvalidRequestError(
                f"Cannot move admin network to {cidr}: "
                f"{len(stranded)} peer(s) outside it ({', '.join(stranded[:3])})"
            )

        logger.warning(
            f"Admin network block {network.cidr} differs from {cidr}, correcting"
        )
        ctx.store.update_network_address_block(network.id, cidr)
        network.cidr = cidr


def bootstrap_admin_network(ctx: HubContext, cidr: str | None = None) -> Network:
    """
    Ensure the admin network exists and matches the interface.

    Missing: created on ADMIN_INTERFACE with ADMIN_NETWORK_ID, reusing the
    private key of an existing configuration file when there is one.
    Present: hub key drift is repaired and the stored block is corrected
    when it differs from `cidr`.

    Raises:
        OverlapConflict: `cidr` overlaps another network.
        InvalidRequestError: ADMIN_INTERFACE belongs to another network, or
            moving the block would strand existing peers.
    """
    cfg = ctx.config
    cidr = str(parse_block(cidr or cfg.ADMIN_CIDR))

    network = ctx.store.get_network(cfg.ADMIN_NETWORK_ID)
    if network is not None:
        repair_hub_keys(ctx, network)
        if network.cidr != cidr:
            _correct_admin_block(ctx, network, cidr)
        return network

    with ctx.allocation_lock:
        owner = ctx.store.get_network_by_interface(cfg.ADMIN_INTERFACE)
        if owner is not None:
            raise InvalidRequestError(
                f"Interface {cfg.ADMIN_INTERFACE} is used by network '{owner.name}'"
            )

        existing = ctx.store.list_networks()
        collider = find_overlap(cidr, existing)
        if collider is not None:
            raise OverlapConflict(cidr, collider.name, collider.cidr)

        listen_port = next_listen_port(
            (n.listen_port for n in existing), cfg.BASE_LISTEN_PORT
        )
        network = ctx.store.create_network(
            network_id=cfg.ADMIN_NETWORK_ID,
            name=cfg.ADMIN_NETWORK_NAME,
            cidr=cidr,
            interface_name=cfg.ADMIN_INTERFACE,
            listen_port=listen_port,
            hub_private_key=None,
            hub_public_key=None,
            hub_endpoint=cfg.get_server_endpoint(listen_port),
        )

    config_path = cfg.get_interface_config_path(cfg.ADMIN_INTERFACE)
    if read_private_key(config_path) is not None:
        logger.info(f"Reusing hub key from {config_path}")
        repair_hub_keys(ctx, network)
        control = ctx.registry.get(network.id)
        if control is not None:
            try:
                control.bring_up()
            except ControlError as e:
                logger.warning(f"Failed to bring up {cfg.ADMIN_INTERFACE}: {e}")
    else:
        private_key, public_key = ctx.keygen()
        ctx.store.update_network_keys(network.id, private_key, public_key)
        network.hub_private_key = private_key
        network.hub_public_key = public_key
        _activate(ctx, network)

    logger.info(f"Bootstrapped admin network {cidr} on {cfg.ADMIN_INTERFACE}")
    return network
