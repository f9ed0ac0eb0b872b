"""
Pydantic models for requests and operation results.

This module defines the data transfer objects passed between the CLI (or any
other front end) and the service layer.

Model Categories:
    - Node Info: Self-reported peer host metadata
    - Network Requests: Network creation
    - Peer Requests: Provisioning, updates and check-ins
    - Reconciliation Results: Import/push/expiration outcomes
    - Statistics: Per-network and global status counts
"""

import datetime
import ipaddress

from pydantic import BaseModel, Field, field_validator


def _naive_local(value: datetime.datetime | None) -> datetime.datetime | None:
    """Timestamps are stored as naive local time."""
    if value is not None and value.tzinfo is not None:
        return value.astimezone().replace(tzinfo=None)
    return value


# =============================================================================
# Node Info
# =============================================================================


class NodeInfo(BaseModel):
    """Host metadata reported by (or inferred for) a peer."""

    os: str | None = Field(default=None, description="Operating system")
    arch: str | None = Field(default=None, description="CPU architecture")
    hostname: str | None = Field(default=None, description="Host name")

    def merged(self, other: "NodeInfo | None") -> "NodeInfo":
        """Return a copy with the non-empty fields of `other` applied."""
        if other is None:
            return self.model_copy()
        updates = {k: v for k, v in other.model_dump().items() if v}
        return self.model_copy(update=updates)


# =============================================================================
# Network Requests
# =============================================================================


class NetworkCreateRequest(BaseModel):
    """Request to create a new network."""

    name: str = Field(..., min_length=1, description="Network display name")
    cidr: str = Field(..., description="Address block, e.g. 10.20.0.0/24")

    @field_validator("cidr")
    @classmethod
    def _validate_cidr(cls, value: str) -> str:
        try:
            network = ipaddress.ip_network(value.strip(), strict=False)
        except ValueError as e:
            raise ValueError(f"invalid CIDR '{value}': {e}") from e
        return str(network)


# =============================================================================
# Peer Requests
# =============================================================================


class PeerCreateRequest(BaseModel):
    """
    Request to provision a peer.

    When public_key is given the client keeps its own private key; otherwise
    a key pair is generated and the private key is returned once.
    """

    name: str = Field(..., min_length=1, description="Peer display name")
    public_key: str | None = Field(
        default=None, description="Client-generated public key"
    )
    labels: dict[str, str] = Field(default_factory=dict, description="Free-form labels")
    expires_at: datetime.datetime | None = Field(
        default=None, description="Access expiration"
    )
    node_info: NodeInfo | None = None

    @field_validator("expires_at")
    @classmethod
    def _normalize_expires_at(cls, value):
        return _naive_local(value)


class PeerUpdateRequest(BaseModel):
    """
    Partial update of a peer.

    Fields left as None are not touched. clear_expiration removes an
    existing expiration.
    """

    name: str | None = None
    status: str | None = Field(default=None, description="Explicit status override")
    expires_at: datetime.datetime | None = None
    clear_expiration: bool = False
    labels: dict[str, str] | None = None
    node_info: NodeInfo | None = None

    @field_validator("expires_at")
    @classmethod
    def _normalize_expires_at(cls, value):
        return _naive_local(value)


class PeerCheckInRequest(BaseModel):
    """Self-reported state sent by a peer agent."""

    node_info: NodeInfo | None = None
    labels: dict[str, str] = Field(default_factory=dict)


# =============================================================================
# Reconciliation Results
# =============================================================================


class ImportResult(BaseModel):
    """Outcome of importing live peers into the store."""

    imported: int = 0
    skipped: int = 0


class SyncResult(BaseModel):
    """Outcome of pushing stored peers to the live tunnel."""

    total: int = 0
    added: int = 0
    skipped: int = 0
    failed: int = 0
    errors: list[str] = Field(default_factory=list)


class ReconcileReport(BaseModel):
    """Full reconciliation pass of one network."""

    network_id: str
    interface_name: str | None = None
    expired: int = 0
    imported: ImportResult = Field(default_factory=ImportResult)
    pushed: SyncResult = Field(default_factory=SyncResult)
    error: str | None = None


# =============================================================================
# Statistics
# =============================================================================


class NetworkStats(BaseModel):
    """Peer counts and traffic totals for one network."""

    network_id: str
    name: str
    interface_name: str | None = None
    total_peers: int = 0
    online: int = 0
    offline: int = 0
    pending: int = 0
    expired: int = 0
    transfer_rx: int = 0
    transfer_tx: int = 0


class StatsOverview(BaseModel):
    """Statistics across all networks."""

    total_networks: int = 0
    total_peers: int = 0
    online: int = 0
    offline: int = 0
    pending: int = 0
    expired: int = 0
    transfer_rx: int = 0
    transfer_tx: int = 0
    networks: list[NetworkStats] = Field(default_factory=list)
