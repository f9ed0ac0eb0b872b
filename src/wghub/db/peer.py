"""
Peer database model.

A peer is one spoke of a network: a virtual address on the network's block
bound to a WireGuard public key, plus the last observed liveness state.
"""

import datetime
import json

import peewee

from wghub.db.base import BaseModel
from wghub.db.network import Network
from wghub.models.enums import PeerStatus
from wghub.models.requests import NodeInfo


# =============================================================================
# Peer Model
# =============================================================================


class Peer(BaseModel):
    """
    A peer of a hub network.

    Attributes:
        id: UUID string (primary key).
        network: Owning network.
        virtual_ip: Address inside the network block, unique per network.
        public_key: Peer public key, immutable once set.
        status: One of PeerStatus values.
        expires_at: Optional access expiration.
        last_seen: Most recent traffic or handshake observed.
    """

    # -------------------------------------------------------------------------
    # Identification
    # -------------------------------------------------------------------------

    id = peewee.CharField(primary_key=True)
    network = peewee.ForeignKeyField(Network, backref="peers", on_delete="CASCADE")
    name = peewee.CharField()
    virtual_ip = peewee.CharField()
    public_key = peewee.CharField(null=True)

    # -------------------------------------------------------------------------
    # Metadata (stored as JSON)
    # -------------------------------------------------------------------------

    labels = peewee.TextField(default="{}")
    node_info = peewee.TextField(null=True)

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    status = peewee.CharField(default=PeerStatus.PENDING.value)
    expires_at = peewee.DateTimeField(null=True)
    created_at = peewee.DateTimeField(default=datetime.datetime.now)

    # -------------------------------------------------------------------------
    # Observed State (written by the liveness tracker)
    # -------------------------------------------------------------------------

    last_seen = peewee.DateTimeField(null=True)
    transfer_rx = peewee.BigIntegerField(default=0)
    transfer_tx = peewee.BigIntegerField(default=0)
    public_ip = peewee.CharField(null=True)  # Endpoint host of the last handshake

    class Meta:
        table_name = "peers"
        indexes = (
            (("network", "virtual_ip"), True),
            (("network", "public_key"), True),
        )

    # =========================================================================
    # JSON Field Accessors
    # =========================================================================

    def get_labels(self) -> dict[str, str]:
        """Get labels as a dictionary."""
        if not self.labels:
            return {}
        try:
            return json.loads(self.labels)
        except json.JSONDecodeError:
            return {}

    def set_labels(self, labels: dict[str, str] | None) -> None:
        """Set labels from a dictionary."""
        self.labels = json.dumps(labels or {})

    def get_node_info(self) -> NodeInfo:
        """Get node info, empty when none was reported."""
        if not self.node_info:
            return NodeInfo()
        try:
            return NodeInfo.model_validate_json(self.node_info)
        except ValueError:
            return NodeInfo()

    def set_node_info(self, info: NodeInfo | None) -> None:
        """Set node info."""
        self.node_info = info.model_dump_json() if info else None

    # =========================================================================
    # Status Helpers
    # =========================================================================

    def is_expired(self, now: datetime.datetime) -> bool:
        """Check whether the expiration has passed."""
        return self.expires_at is not None and self.expires_at < now

    def is_disabled(self, now: datetime.datetime) -> bool:
        """Expired by timestamp or explicitly marked expired."""
        return self.status == PeerStatus.EXPIRED.value or self.is_expired(now)

    # =========================================================================
    # Serialization
    # =========================================================================

    def to_dict(self) -> dict:
        """Convert peer to a dictionary."""
        return {
            "id": self.id,
            "network_id": self.network_id,
            "name": self.name,
            "virtual_ip": self.virtual_ip,
            "public_key": self.public_key,
            "labels": self.get_labels(),
            "node_info": self.get_node_info().model_dump(),
            "status": self.status,
            "expires_at": self.expires_at.isoformat() if self.expires_at else None,
            "last_seen": self.last_seen.isoformat() if self.last_seen else None,
            "transfer_rx": self.transfer_rx,
            "transfer_tx": self.transfer_tx,
            "public_ip": self.public_ip,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
