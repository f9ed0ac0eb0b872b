"""
Enumeration types for wghub.

This module defines the enumerations shared by the store, the services and
the CLI for peer status tracking and configuration options.
"""

from enum import Enum


# =============================================================================
# Peer-Related Enums
# =============================================================================


class PeerStatus(str, Enum):
    """
    Peer connectivity status.

    State transitions:
        PENDING -> ONLINE (first traffic or handshake)
        ONLINE <-> OFFLINE (liveness windows)
        Any -> EXPIRED (expiration passed or set by an operator)
        EXPIRED -> PENDING (expiration extended into the future)
    """

    PENDING = "pending"  # Provisioned, never seen on the tunnel
    ONLINE = "online"  # Recent traffic or handshake
    OFFLINE = "offline"  # Known peer, no recent signal
    EXPIRED = "expired"  # Access revoked; kept off the live tunnel


# =============================================================================
# Configuration Enums
# =============================================================================


class LogLevel(str, Enum):
    """Logging verbosity levels."""

    FULL = "full"  # Everything including per-peer liveness traces
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
