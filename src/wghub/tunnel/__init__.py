"""
Tunnel control for wghub.

Provides the TunnelControl interface, its WireGuard implementation and the
key/configuration helpers around the wg tool.
"""

from wghub.tunnel.base import LiveSnapshot, TunnelControl
from wghub.tunnel.wireguard import WireGuardControl

__all__ = ["LiveSnapshot", "TunnelControl", "WireGuardControl"]
