"""
Desired-state store.

Store is the only entry point the services use for persistence. Lookups
return None when a row is absent; the service layer decides whether that is
a NotFound. Every peewee failure is re-raised as StoreError.

Multi-field peer writes (update_peer, update_peer_state) are issued as one
UPDATE statement so concurrent writers never interleave partial updates.
"""

import datetime
import functools
import json
import uuid

import peewee

from wghub.db.base import db
from wghub.db.network import Network
from wghub.db.peer import Peer
from wghub.exceptions import StoreError
from wghub.models.enums import PeerStatus
from wghub.models.requests import NodeInfo
from wghub.utils.logger import get_logger

logger = get_logger(__name__)


def _store_errors(func):
    """Translate peewee exceptions into StoreError."""

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except peewee.PeeweeException as e:
            logger.error(f"Store operation {func.__name__} failed: {e}")
            raise StoreError(f"{func.__name__}: {e}") from e

    return wrapper


class Store:
    """Peewee-backed store for networks and peers."""

    # =========================================================================
    # Networks
    # =========================================================================

    @_store_errors
    def list_networks(self) -> list[Network]:
        return list(Network.select().order_by(Network.created_at))

    @_store_errors
    def get_network(self, network_id: str) -> Network | None:
        return Network.get_or_none(Network.id == network_id)

    @_store_errors
    def get_network_by_interface(self, interface_name: str) -> Network | None:
        return Network.get_or_none(Network.interface_name == interface_name)

    @_store_errors
    def create_network(
        self,
        name: str,
        cidr: str,
        interface_name: str | None,
        listen_port: int | None,
        hub_private_key: str | None,
        hub_public_key: str | None,
        hub_endpoint: str | None,
        network_id: str | None = None,
    ) -> Network:
        return Network.create(
            id=network_id or str(uuid.uuid4()),
            name=name,
            cidr=cidr,
            interface_name=interface_name,
            listen_port=listen_port,
            hub_private_key=hub_private_key,
            hub_public_key=hub_public_key,
            hub_endpoint=hub_endpoint,
        )

    @_store_errors
    def delete_network(self, network_id: str) -> bool:
        """Delete a network and all of its peers."""
        with db.atomic():
            Peer.delete().where(Peer.network == network_id).execute()
            deleted = Network.delete().where(Network.id == network_id).execute()
        return deleted > 0

    @_store_errors
    def update_network_address_block(self, network_id: str, cidr: str) -> bool:
        updated = (
            Network.update(cidr=cidr, updated_at=datetime.datetime.now())
            .where(Network.id == network_id)
            .execute()
        )
        return updated > 0

    @_store_errors
    def update_network_keys(
        self, network_id: str, private_key: str, public_key: str
    ) -> bool:
        updated = (
            Network.update(
                hub_private_key=private_key,
                hub_public_key=public_key,
                updated_at=datetime.datetime.now(),
            )
            .where(Network.id == network_id)
            .execute()
        )
        return updated > 0

    # =========================================================================
    # Peers
    # =========================================================================

    @_store_errors
    def list_peers(self, network_id: str) -> list[Peer]:
        return list(
            Peer.select().where(Peer.network == network_id).order_by(Peer.created_at)
        )

    @_store_errors
    def get_peer(self, peer_id: str) -> Peer | None:
        return Peer.get_or_none(Peer.id == peer_id)

    @_store_errors
    def find_peer_by_public_key(self, network_id: str, public_key: str) -> Peer | None:
        return Peer.get_or_none(
            (Peer.network == network_id) & (Peer.public_key == public_key)
        )

    @_store_errors
    def create_peer(
        self,
        network_id: str,
        name: str,
        virtual_ip: str,
        public_key: str | None,
        labels: dict[str, str] | None = None,
        node_info: NodeInfo | None = None,
        status: PeerStatus = PeerStatus.PENDING,
        expires_at: datetime.datetime | None = None,
        last_seen: datetime.datetime | None = None,
    ) -> Peer:
        peer = Peer(
            id=str(uuid.uuid4()),
            network=network_id,
            name=name,
            virtual_ip=virtual_ip,
            public_key=public_key,
            status=PeerStatus(status).value,
            expires_at=expires_at,
            last_seen=last_seen,
        )
        peer.set_labels(labels)
        peer.set_node_info(node_info)
        peer.save(force_insert=True)
        return peer

    @_store_errors
    def update_peer(self, peer_id: str, **fields) -> bool:
        """
        Update any subset of a peer's columns in one statement.

        labels (dict) and node_info (NodeInfo) are serialized; status accepts
        a PeerStatus.
        """
        if not fields:
            return False
        if "labels" in fields:
            fields["labels"] = json.dumps(fields["labels"] or {})
        if "node_info" in fields:
            info = fields["node_info"]
            fields["node_info"] = info.model_dump_json() if info else None
        if "status" in fields:
            fields["status"] = PeerStatus(fields["status"]).value
        updated = Peer.update(**fields).where(Peer.id == peer_id).execute()
        return updated > 0

    @_store_errors
    def update_peer_state(
        self,
        peer_id: str,
        status: PeerStatus,
        last_seen: datetime.datetime | None,
        transfer_rx: int,
        transfer_tx: int,
        public_ip: str | None,
    ) -> bool:
        """Persist one liveness observation atomically."""
        updated = (
            Peer.update(
                status=PeerStatus(status).value,
                last_seen=last_seen,
                transfer_rx=transfer_rx,
                transfer_tx=transfer_tx,
                public_ip=public_ip,
            )
            .where(Peer.id == peer_id)
            .execute()
        )
        return updated > 0

    @_store_errors
    def delete_peer(self, peer_id: str) -> bool:
        return Peer.delete().where(Peer.id == peer_id).execute() > 0
