"""
Peer lifecycle and enriched peer views.

Every peer returned by this module has been enriched against the live
interface of its network:
    - expired peers are marked expired and pulled off the interface
    - peers present on the interface get status, counters, endpoint and
      last_seen from the liveness tracker
    - peers absent from the interface (or when the interface cannot be
      listed) keep their stored status

Interactive operations persist the desired state first and then touch the
live interface, surfacing a ControlError to the caller; the next
reconciliation pass retries whatever did not reach the interface.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from wghub.exceptions import (
    ControlError,
    InvalidRequestError,
    NotFound,
    StoreError,
    WgHubError,
)
from wghub.models.enums import PeerStatus
from wghub.models.requests import (
    NetworkStats,
    NodeInfo,
    PeerCheckInRequest,
    PeerCreateRequest,
    PeerUpdateRequest,
    StatsOverview,
)
from wghub.services.address import allocate_for_network
from wghub.services.networks import get_network
from wghub.services.reconciler import PeerReconciler
from wghub.utils.logger import get_logger

if TYPE_CHECKING:
    from wghub.context import HubContext
    from wghub.db.network import Network
    from wghub.db.peer import Peer
    from wghub.tunnel.base import LiveSnapshot, TunnelControl

logger = get_logger(__name__)

# Labels a peer agent may set that double as node info
NODE_INFO_LABELS = ("os", "arch", "hostname")


@dataclass
class ProvisionResult:
    """A new peer and, when generated here, its private key (shown once)."""

    peer: Peer
    private_key: str | None = None


# =============================================================================
# Enrichment
# =============================================================================


def _live_state(
    ctx: HubContext, network: Network
) -> tuple[TunnelControl | None, dict[str, LiveSnapshot] | None]:
    try:
        control = ctx.registry.get(network.id)
    except WgHubError as e:
        logger.warning(f"Tunnel control lookup for {network.id} failed: {e}")
        return None, None
    if control is None:
        return None, None
    try:
        return control, dict(control.list_peers())
    except ControlError as e:
        logger.warning(f"Cannot list live peers of {network.interface_name}: {e}")
        return control, None


def enrich_peers(ctx: HubContext, network: Network, peers: list[Peer]) -> list[Peer]:
    """Apply expiration and liveness to peers of one network."""
    control, live = _live_state(ctx, network)
    reconciler = PeerReconciler(ctx)
    now = ctx.now()
    now_dt = ctx.now_datetime()

    for peer in peers:
        try:
            if reconciler.enforce_expiration(peer, live, control, now_dt):
                continue
        except StoreError as e:
            logger.warning(f"Could not persist expiration of {peer.name}: {e}")
            continue

        if live is None or not peer.public_key or peer.public_key not in live:
            continue

        observation = ctx.liveness.observe(peer, live[peer.public_key], now)
        if not observation.differs_from(peer):
            continue
        observation.apply_to(peer)
        try:
            ctx.store.update_peer_state(
                peer.id,
                status=observation.status,
                last_seen=observation.last_seen,
                transfer_rx=observation.transfer_rx,
                transfer_tx=observation.transfer_tx,
                public_ip=observation.public_ip,
            )
        except StoreError as e:
            logger.warning(f"Could not persist liveness of {peer.name}: {e}")

    return peers


def node_info_view(peer: Peer) -> NodeInfo:
    """Reported node info, with gaps filled from os/arch/hostname labels."""
    labels = peer.get_labels()
    from_labels = NodeInfo(**{k: labels.get(k) for k in NODE_INFO_LABELS})
    return from_labels.merged(peer.get_node_info())


def peer_view(peer: Peer) -> dict:
    """Serializable peer with node info fallback applied."""
    data = peer.to_dict()
    data["node_info"] = node_info_view(peer).model_dump()
    return data


# =============================================================================
# Queries
# =============================================================================


def list_peers(ctx: HubContext, network_id: str) -> list[Peer]:
    network = get_network(ctx, network_id)
    return enrich_peers(ctx, network, ctx.store.list_peers(network.id))


def _get_stored_peer(ctx: HubContext, peer_id: str) -> Peer:
    peer = ctx.store.get_peer(peer_id)
    if peer is None:
        raise NotFound("peer", peer_id)
    return peer


def get_peer(ctx: HubContext, peer_id: str) -> Peer:
    peer = _get_stored_peer(ctx, peer_id)
    network = get_network(ctx, peer.network_id)
    return enrich_peers(ctx, network, [peer])[0]


# =============================================================================
# Provisioning
# =============================================================================


def provision_peer(
    ctx: HubContext, network_id: str, request: PeerCreateRequest
) -> ProvisionResult:
    """
    Create a peer with the next free address and push it to the interface.

    Raises:
        NotFound: Unknown network.
        AddressSpaceExhausted: No address left in the block.
        InvalidRequestError: The public key is already used in the network.
        ControlError: The peer was stored but could not be pushed.
    """
    network = get_network(ctx, network_id)

    if request.public_key:
        private_key, public_key = None, request.public_key.strip()
        if ctx.store.find_peer_by_public_key(network.id, public_key):
            raise InvalidRequestError(
                f"public key already registered in network {network.name}"
            )
    else:
        private_key, public_key = ctx.keygen()

    with ctx.allocation_lock:
        virtual_ip = allocate_for_network(ctx.store, network)
        peer = ctx.store.create_peer(
            network.id,
            name=request.name,
            virtual_ip=virtual_ip,
            public_key=public_key,
            labels=request.labels,
            node_info=request.node_info,
            status=PeerStatus.PENDING,
            expires_at=request.expires_at,
        )
    logger.info(f"Provisioned peer {peer.name} at {virtual_ip} in {network.name}")

    if peer.is_disabled(ctx.now_datetime()):
        return ProvisionResult(peer, private_key)

    control = ctx.registry.get(network.id)
    if control is None:
        logger.warning(
            f"{network.interface_name or network.id} unavailable, "
            f"peer {peer.name} will be pushed on the next sync"
        )
    else:
        control.add_peer(public_key, [f"{virtual_ip}/32"])

    return ProvisionResult(peer, private_key)


# =============================================================================
# Updates
# =============================================================================


def update_peer(ctx: HubContext, peer_id: str, request: PeerUpdateRequest) -> Peer:
    """
    Apply a partial update and bring the interface in line with it.

    Status transitions driven by the expiration:
        expiration set in the past          -> expired, removed from interface
        expired peer given a new expiration -> pending, re-added
        expired peer with expiration cleared -> pending, re-added
    An explicit status in the request wins over these rules.

    Raises:
        NotFound: Unknown peer.
        InvalidRequestError: Unknown status value.
        ControlError: Stored, but the interface could not be updated.
    """
    peer = _get_stored_peer(ctx, peer_id)
    now = ctx.now_datetime()
    was_disabled = peer.is_disabled(now)

    fields: dict = {}
    if request.name:
        fields["name"] = request.name
    if request.clear_expiration:
        fields["expires_at"] = None
    elif request.expires_at is not None:
        fields["expires_at"] = request.expires_at
    if request.labels is not None:
        fields["labels"] = request.labels
    if request.node_info is not None:
        fields["node_info"] = peer.get_node_info().merged(request.node_info)

    if request.status:
        try:
            fields["status"] = PeerStatus(request.status)
        except ValueError as e:
            raise InvalidRequestError(f"unknown status '{request.status}'") from e
    else:
        expires_at = fields.get("expires_at", peer.expires_at)
        if expires_at is not None and expires_at < now:
            fields["status"] = PeerStatus.EXPIRED
        elif peer.status == PeerStatus.EXPIRED.value and "expires_at" in fields:
            fields["status"] = PeerStatus.PENDING

    ctx.store.update_peer(peer.id, **fields)
    peer = _get_stored_peer(ctx, peer_id)
    is_disabled = peer.is_disabled(now)

    if peer.public_key and was_disabled != is_disabled:
        control = ctx.registry.get(peer.network_id)
        if control is None:
            logger.warning(f"Interface of peer {peer.name} unavailable")
        elif is_disabled:
            control.remove_peer(peer.public_key)
            logger.info(f"Peer {peer.name} disabled, removed from {control.interface}")
        else:
            control.add_peer(peer.public_key, [f"{peer.virtual_ip}/32"])
            logger.info(f"Peer {peer.name} reactivated on {control.interface}")

    return get_peer(ctx, peer_id)


def check_in(ctx: HubContext, peer_id: str, request: PeerCheckInRequest) -> Peer:
    """Merge node info and labels reported by a peer agent."""
    peer = _get_stored_peer(ctx, peer_id)
    labels = peer.get_labels()
    labels.update(request.labels)
    ctx.store.update_peer(
        peer.id,
        labels=labels,
        node_info=peer.get_node_info().merged(request.node_info),
    )
    logger.debug(f"Check-in from peer {peer.name}")
    return get_peer(ctx, peer_id)


def delete_peer(ctx: HubContext, peer_id: str) -> None:
    """Remove a peer from the interface (best effort) and from the store."""
    peer = _get_stored_peer(ctx, peer_id)

    if peer.public_key:
        control = ctx.registry.get(peer.network_id)
        if control is not None:
            try:
                control.remove_peer(peer.public_key)
            except ControlError as e:
                logger.warning(f"Failed to remove peer {peer.name} from interface: {e}")
        ctx.activity.forget(peer.public_key)

    ctx.store.delete_peer(peer.id)
    logger.info(f"Deleted peer {peer.name} ({peer.virtual_ip})")


# =============================================================================
# Statistics and Diagnostics
# =============================================================================


def network_stats(ctx: HubContext, network: Network) -> NetworkStats:
    peers = enrich_peers(ctx, network, ctx.store.list_peers(network.id))
    stats = NetworkStats(
        network_id=network.id,
        name=network.name,
        interface_name=network.interface_name,
        total_peers=len(peers),
    )
    for peer in peers:
        if peer.status in (s.value for s in PeerStatus):
            setattr(stats, peer.status, getattr(stats, peer.status) + 1)
        stats.transfer_rx += peer.transfer_rx or 0
        stats.transfer_tx += peer.transfer_tx or 0
    return stats


def stats_overview(ctx: HubContext) -> StatsOverview:
    overview = StatsOverview()
    for network in ctx.store.list_networks():
        stats = network_stats(ctx, network)
        overview.networks.append(stats)
        overview.total_networks += 1
        overview.total_peers += stats.total_peers
        overview.online += stats.online
        overview.offline += stats.offline
        overview.pending += stats.pending
        overview.expired += stats.expired
        overview.transfer_rx += stats.transfer_rx
        overview.transfer_tx += stats.transfer_tx
    return overview


def debug_network(ctx: HubContext, network_id: str) -> dict:
    """Live peers next to stored peers, for diagnosing drift."""
    network = get_network(ctx, network_id)
    registered = ctx.registry.peek(network.id) is not None
    stored = ctx.store.list_peers(network.id)

    live: dict[str, LiveSnapshot] = {}
    error = None
    control = ctx.registry.get(network.id)
    if control is None:
        error = "tunnel control unavailable"
    else:
        try:
            live = control.list_peers()
        except ControlError as e:
            error = str(e)

    stored_keys = {p.public_key for p in stored if p.public_key}
    return {
        "network": network.to_dict(),
        "control_registered": registered,
        "live_error": error,
        "live_peers": [
            {
                "public_key": s.public_key,
                "endpoint": s.endpoint,
                "allowed_ips": s.allowed_ips,
                "latest_handshake": s.latest_handshake,
                "rx_bytes": s.rx_bytes,
                "tx_bytes": s.tx_bytes,
            }
            for s in live.values()
        ],
        "stored_peers": [
            {
                "id": p.id,
                "name": p.name,
                "virtual_ip": p.virtual_ip,
                "public_key": p.public_key,
                "status": p.status,
            }
            for p in stored
        ],
        "live_only": sorted(set(live) - stored_keys),
        "stored_only": sorted(stored_keys - set(live)),
    }
