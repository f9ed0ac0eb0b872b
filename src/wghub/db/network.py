"""
Network database model.

A network is one address block served by one WireGuard interface on the hub.
"""

import datetime

import peewee

from wghub.db.base import BaseModel


# =============================================================================
# Network Model
# =============================================================================


class Network(BaseModel):
    """
    A hub network (one WireGuard interface).

    Attributes:
        id: UUID string (primary key).
        cidr: Address block; never overlaps another network's block.
        interface_name: Interface identity, e.g. "wg3". Unique.
        listen_port: UDP listen port. Unique.
        hub_private_key: Interface private key; never serialized.
    """

    # -------------------------------------------------------------------------
    # Identification
    # -------------------------------------------------------------------------

    id = peewee.CharField(primary_key=True)
    name = peewee.CharField()
    cidr = peewee.CharField()

    # -------------------------------------------------------------------------
    # Interface
    # -------------------------------------------------------------------------

    interface_name = peewee.CharField(unique=True, null=True)
    listen_port = peewee.IntegerField(unique=True, null=True)
    hub_endpoint = peewee.CharField(null=True)  # host:port peers dial

    # -------------------------------------------------------------------------
    # Keys
    # -------------------------------------------------------------------------

    hub_private_key = peewee.CharField(null=True)
    hub_public_key = peewee.CharField(null=True)

    # -------------------------------------------------------------------------
    # Timestamps
    # -------------------------------------------------------------------------

    created_at = peewee.DateTimeField(default=datetime.datetime.now)
    updated_at = peewee.DateTimeField(default=datetime.datetime.now)

    class Meta:
        table_name = "networks"

    def to_dict(self) -> dict:
        """Convert network to a dictionary (without the private key)."""
        return {
            "id": self.id,
            "name": self.name,
            "cidr": self.cidr,
            "interface_name": self.interface_name,
            "listen_port": self.listen_port,
            "hub_endpoint": self.hub_endpoint,
            "hub_public_key": self.hub_public_key,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
