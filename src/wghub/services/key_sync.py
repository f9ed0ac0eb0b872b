"""
Hub key drift repair.

The interface configuration file is what wg-quick loads, so its private key
is the key the interface really uses. If the stored hub keys drifted from it
(restored backup, hand-edited config, re-created database) peers would be
given a hub public key that no longer matches. This module detects the drift
and rewrites the stored keys.

Key recovery precedence:
    1. PrivateKey of <config_dir>/<interface>.conf, public key derived by
       the interface's tunnel control
    2. Stored hub keys, written back to a missing configuration file
    3. A fresh key generated by the tunnel control (nothing known at all)
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from wghub.exceptions import ControlError, StoreError
from wghub.services.address import hub_address
from wghub.tunnel.keys import read_private_key, write_interface_config
from wghub.utils.logger import get_logger

if TYPE_CHECKING:
    from wghub.context import HubContext
    from wghub.db.network import Network
    from wghub.tunnel.base import TunnelControl

logger = get_logger(__name__)


def repair_hub_keys(
    ctx: HubContext, network: Network, control: TunnelControl | None = None
) -> bool:
    """
    Make the stored hub keys match the interface configuration.

    Never raises for tunnel or store failures; they are logged.

    Returns:
        True when the stored keys were rewritten.
    """
    if not network.interface_name:
        return False

    control = control or ctx.registry.get(network.id)
    if control is None:
        logger.warning(f"Key check skipped, {network.interface_name} unavailable")
        return False

    config_path = ctx.config.get_interface_config_path(network.interface_name)
    try:
        private_key = read_private_key(config_path)

        if private_key is None and network.hub_private_key:
            write_interface_config(
                config_path,
                network.hub_private_key,
                hub_address(network.cidr),
                network.listen_port or ctx.config.BASE_LISTEN_PORT,
            )
            logger.info(f"Restored {config_path} from stored hub key")
            return False

        # Derives from the file, generating one when it does not exist
        public_key = control.public_key()
        if private_key is None:
            private_key = read_private_key(config_path)
    except ControlError as e:
        logger.warning(f"Key check of {network.interface_name} failed: {e}")
        return False

    if not private_key:
        logger.warning(f"No private key readable for {network.interface_name}")
        return False

    if public_key == network.hub_public_key and private_key == network.hub_private_key:
        logger.debug(f"Hub keys of {network.interface_name} are in sync")
        return False

    stored_key = (network.hub_public_key or "<none>")[:8]
    logger.warning(
        f"Hub key drift on {network.interface_name}: stored {stored_key}..., "
        f"interface {public_key[:8]}..., updating store"
    )
    try:
        ctx.store.update_network_keys(network.id, private_key, public_key)
    except StoreError as e:
        logger.error(f"Failed to store repaired keys of {network.interface_name}: {e}")
        return False

    network.hub_private_key = private_key
    network.hub_public_key = public_key
    return True


def repair_all_hub_keys(ctx: HubContext) -> int:
    """Run the drift repair for every network; returns the number repaired."""
    repaired = 0
    for network in ctx.store.list_networks():
        if repair_hub_keys(ctx, network):
            repaired += 1
    return repaired
