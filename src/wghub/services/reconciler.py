"""
Two-way reconciliation between the store and the live interfaces.

The store holds the desired peers, the interface holds the live ones. Each
pass over a network lists the live peers once and then runs:

    1. Expiration: stored peers whose expiration passed are marked expired
       and removed from the interface if still live (explicitly expired
       peers are removed too).
    2. Import: live keys unknown to the store become stored peers, so peers
       added out of band (by hand, or restored from a config file) are not
       lost. Entries without a usable address are skipped with a warning.
    3. Push: stored, non-expired peers missing from the interface are added
       with a single /32 allowed address.

A pass never deletes stored peers. Single add/remove failures are logged
and counted; they never abort the pass, and each network is reconciled
independently of the others.
"""

from __future__ import annotations

import datetime
import ipaddress
from typing import TYPE_CHECKING

from wghub.exceptions import ControlError, NotFound, StoreError, WgHubError
from wghub.models.enums import PeerStatus
from wghub.models.requests import ImportResult, NodeInfo, ReconcileReport, SyncResult
from wghub.services.address import in_block
from wghub.utils.logger import get_logger

if TYPE_CHECKING:
    from wghub.context import HubContext
    from wghub.db.network import Network
    from wghub.db.peer import Peer
    from wghub.tunnel.base import LiveSnapshot, TunnelControl

logger = get_logger(__name__)

IMPORTED_LABEL = "imported"


def imported_peer_name(ip: str) -> str:
    return f"imported-{ip}"


class PeerReconciler:
    """Reconciles stored peers with the live tunnel of each network."""

    def __init__(self, ctx: HubContext):
        self.ctx = ctx

    # =========================================================================
    # Helpers
    # =========================================================================

    def _require_control(self, network: Network) -> TunnelControl:
        control = self.ctx.registry.get(network.id)
        if control is None:
            raise ControlError(
                f"network {network.id} has no tunnel interface available",
                network.interface_name,
            )
        return control

    def _live(self, network: Network, live: dict | None) -> dict[str, LiveSnapshot]:
        if live is not None:
            return live
        return self._require_control(network).list_peers()

    # =========================================================================
    # Expiration
    # =========================================================================

    def enforce_expiration(
        self,
        peer: Peer,
        live: dict[str, LiveSnapshot] | None,
        control: TunnelControl | None,
        now: datetime.datetime,
    ) -> bool:
        """
        Mark a peer expired and pull it off the interface.

        Returns:
            True when the peer is disabled (expired by time or by status).
        """
        if not peer.is_disabled(now):
            return False

        if peer.status != PeerStatus.EXPIRED.value:
            self.ctx.store.update_peer(peer.id, status=PeerStatus.EXPIRED)
            peer.status = PeerStatus.EXPIRED.value
            logger.info(
                f"Peer {peer.name} ({peer.virtual_ip}) expired at {peer.expires_at}"
            )

        if control is not None and live is not None and peer.public_key in live:
            try:
                control.remove_peer(peer.public_key)
                live.pop(peer.public_key, None)
                logger.info(
                    f"Removed expired peer {peer.name} from {control.interface}"
                )
            except ControlError as e:
                logger.warning(f"Failed to remove expired peer {peer.name}: {e}")
        return True

    # =========================================================================
    # Import (live -> store)
    # =========================================================================

    def import_live_peers(
        self,
        network: Network,
        live: dict[str, LiveSnapshot] | None = None,
        stored: list[Peer] | None = None,
    ) -> ImportResult:
        """Create stored peers for live keys the store does not know."""
        live = self._live(network, live)
        stored = self.ctx.store.list_peers(network.id) if stored is None else stored

        known_keys = {p.public_key for p in stored if p.public_key}
        used_ips = {p.virtual_ip for p in stored}
        result = ImportResult()

        for public_key, snapshot in live.items():
            if public_key in known_keys:
                continue

            ip = self._import_address(network, snapshot, used_ips)
            if ip is None:
                result.skipped += 1
                continue

            name = imported_peer_name(ip)
            last_seen = (
                datetime.datetime.fromtimestamp(snapshot.latest_handshake)
                if snapshot.latest_handshake
                else None
            )
            try:
                peer = self.ctx.store.create_peer(
                    network.id,
                    name=name,
                    virtual_ip=ip,
                    public_key=public_key,
                    labels={IMPORTED_LABEL: "true"},
                    node_info=NodeInfo(hostname=name, os="unknown", arch="unknown"),
                    status=PeerStatus.ONLINE,
                    last_seen=last_seen,
                )
            except StoreError as e:
                logger.warning(f"Could not import peer {public_key[:8]}...: {e}")
                result.skipped += 1
                continue

            stored.append(peer)
            known_keys.add(public_key)
            used_ips.add(ip)
            result.imported += 1
            logger.info(f"Imported live peer {public_key[:8]}... as {name}")

        return result

    def _import_address(
        self, network: Network, snapshot: LiveSnapshot, used_ips: set[str]
    ) -> str | None:
        key = snapshot.public_key[:8]
        if not snapshot.allowed_ips:
            logger.warning(f"Live peer {key}... has no allowed IPs, not importing")
            return None

        raw = snapshot.allowed_ips[0].split("/")[0].strip()
        try:
            ip = str(ipaddress.ip_address(raw))
        except ValueError:
            logger.warning(f"Live peer {key}... has invalid allowed IP '{raw}'")
            return None

        if not in_block(network.cidr, ip):
            logger.warning(f"Live peer {key}... address {ip} is outside {network.cidr}")
            return None
        if ip in used_ips:
            logger.warning(f"Live peer {key}... address {ip} already belongs to a peer")
            return None
        return ip

    # =========================================================================
    # Push (store -> live)
    # =========================================================================

    def push_desired_peers(
        self,
        network: Network,
        live: dict[str, LiveSnapshot] | None = None,
        stored: list[Peer] | None = None,
    ) -> SyncResult:
        """Add stored, non-expired peers that are missing from the interface."""
        control = self._require_control(network)
        live = control.list_peers() if live is None else live
        stored = self.ctx.store.list_peers(network.id) if stored is None else stored
        now = self.ctx.now_datetime()
        result = SyncResult()

        for peer in stored:
            if not peer.public_key:
                continue
            result.total += 1

            if peer.public_key in live or peer.is_disabled(now):
                result.skipped += 1
                continue

            try:
                control.add_peer(peer.public_key, [f"{peer.virtual_ip}/32"])
            except ControlError as e:
                result.failed += 1
                result.errors.append(f"{peer.name}: {e}")
                logger.warning(f"Failed to push peer {peer.name}: {e}")
                continue

            result.added += 1
            logger.info(
                f"Pushed peer {peer.name} ({peer.virtual_ip}) to {control.interface}"
            )

        return result

    # =========================================================================
    # Full Passes
    # =========================================================================

    def reconcile_network(self, network_id: str) -> ReconcileReport:
        """
        Run expiration, import and push for one network.

        Raises:
            NotFound: Unknown network.
            ControlError: Interface unavailable or live listing failed.
        """
        network = self.ctx.store.get_network(network_id)
        if network is None:
            raise NotFound("network", network_id)

        control = self._require_control(network)
        live = dict(control.list_peers())
        stored = self.ctx.store.list_peers(network.id)
        now = self.ctx.now_datetime()

        report = ReconcileReport(
            network_id=network.id, interface_name=network.interface_name
        )
        for peer in stored:
            already_expired = peer.status == PeerStatus.EXPIRED.value
            expired = self.enforce_expiration(peer, live, control, now)
            if expired and not already_expired:
                report.expired += 1

        report.imported = self.import_live_peers(network, live, stored)
        report.pushed = self.push_desired_peers(network, live, stored)

        logger.info(
            f"Reconciled {network.interface_name}: expired={report.expired} "
            f"imported={report.imported.imported} added={report.pushed.added} "
            f"failed={report.pushed.failed}"
        )
        return report

    def reconcile_all(self) -> list[ReconcileReport]:
        """Reconcile every network with an interface; failures stay per network."""
        reports = []
        for network in self.ctx.store.list_networks():
            if not network.interface_name:
                continue
            try:
                reports.append(self.reconcile_network(network.id))
            except WgHubError as e:
                logger.error(f"Reconciliation of {network.interface_name} failed: {e}")
                reports.append(
                    ReconcileReport(
                        network_id=network.id,
                        interface_name=network.interface_name,
                        error=str(e),
                    )
                )
        return reports
