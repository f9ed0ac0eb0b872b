"""
Tunnel control capability interface.

A TunnelControl drives one WireGuard interface. Every call may block on an
external process and may raise ControlError; callers must not hold any
registry or activity lock while calling it.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field


@dataclass
class LiveSnapshot:
    """One peer as currently seen on the live interface."""

    public_key: str
    endpoint: str | None = None  # "host:port", None when never connected
    allowed_ips: list[str] = field(default_factory=list)
    latest_handshake: int = 0  # Unix seconds, 0 = never
    rx_bytes: int = 0
    tx_bytes: int = 0
    keepalive: int | None = None  # Seconds, None when off

    @property
    def endpoint_host(self) -> str | None:
        """Endpoint address without the port (IPv6 brackets removed)."""
        if not self.endpoint:
            return None
        host, _, _ = self.endpoint.rpartition(":")
        return host.strip("[]") or None


class TunnelControl(ABC):
    """Control surface of one tunnel interface."""

    def __init__(self, interface: str):
        self.interface = interface

    @abstractmethod
    def bring_up(self) -> None:
        """Activate the interface; no-op when it already exists."""

    @abstractmethod
    def bring_down(self) -> None:
        """Deactivate the interface; never raises."""

    @abstractmethod
    def add_peer(self, public_key: str, allowed_ips: list[str]) -> None:
        """Add or update a peer's allowed addresses."""

    @abstractmethod
    def remove_peer(self, public_key: str) -> None:
        """Remove a peer; absence is not an error."""

    @abstractmethod
    def list_peers(self) -> dict[str, LiveSnapshot]:
        """Return the live peers keyed by public key."""

    @abstractmethod
    def public_key(self) -> str:
        """Return the interface's real public key."""

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.interface!r})"
