"""
wghub - hub-and-spoke WireGuard control plane.

The hub keeps the desired state (networks, peers, expirations) in SQLite and
keeps the live WireGuard interfaces consistent with it, annotating every peer
with a connectivity status derived from tunnel telemetry.
"""

__version__ = "0.1.0"
