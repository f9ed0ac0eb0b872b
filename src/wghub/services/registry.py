"""
Registry of tunnel control capabilities, one per network.

Lookup:
    1. Fast path: read lock, return the registered capability.
    2. Slow path: per-network single-flight lock, so concurrent first callers
       for the same network build one capability between them while other
       networks proceed independently.
         - re-check the map (another caller may have finished)
         - look the network up in the store; no network or no interface
           name means the network is unavailable (None)
         - build the capability outside every registry lock
         - install under the write lock
    Callers receiving None skip the network; they never fail because of it.

The map is a cache. Losing it (process restart) only costs the slow path.
"""

from __future__ import annotations

import threading
from collections.abc import Callable
from typing import TYPE_CHECKING

from wghub.exceptions import ControlError
from wghub.utils.logger import get_logger
from wghub.utils.rwlock import RWLock

if TYPE_CHECKING:
    from wghub.db.network import Network
    from wghub.db.store import Store
    from wghub.tunnel.base import TunnelControl

logger = get_logger(__name__)

ControlFactory = Callable[["Network"], "TunnelControl"]


class ManagerRegistry:
    """Thread-safe network id -> TunnelControl map with lazy creation."""

    def __init__(self, store: Store, control_factory: ControlFactory):
        self.store = store
        self.control_factory = control_factory

        self._controls: dict[str, TunnelControl] = {}
        self._lock = RWLock()

        # Single-flight locks for first-time creation, one per network
        self._creation_locks: dict[str, threading.Lock] = {}
        self._creation_guard = threading.Lock()

    def _creation_lock(self, network_id: str) -> threading.Lock:
        with self._creation_guard:
            lock = self._creation_locks.get(network_id)
            if lock is None:
                lock = self._creation_locks[network_id] = threading.Lock()
            return lock

    def _discard_creation_lock(self, network_id: str, lock: threading.Lock) -> None:
        with self._creation_guard:
            if self._creation_locks.get(network_id) is lock:
                del self._creation_locks[network_id]

    def peek(self, network_id: str) -> TunnelControl | None:
        """Return the registered capability without creating one."""
        with self._lock.read_locked():
            return self._controls.get(network_id)

    def get(self, network_id: str) -> TunnelControl | None:
        """
        Return the capability of a network, creating it on first use.

        Returns:
            The capability, or None when the network is unavailable.

        Raises:
            StoreError: If the network lookup fails.
        """
        control = self.peek(network_id)
        if control is not None:
            return control

        creation_lock = self._creation_lock(network_id)
        with creation_lock:
            control = self.peek(network_id)
            if control is not None:
                return control

            network = self.store.get_network(network_id)
            if network is None:
                # Unknown ids must not pin a lock entry
                self._discard_creation_lock(network_id, creation_lock)
                logger.debug(f"Network {network_id} not found, unavailable")
                return None
            if not network.interface_name:
                logger.debug(f"Network {network_id} has no interface, unavailable")
                return None

            try:
                control = self.control_factory(network)
            except ControlError as e:
                logger.warning(
                    f"Cannot build tunnel control for {network.interface_name}: {e}"
                )
                return None

            with self._lock.write_locked():
                existing = self._controls.get(network_id)
                if existing is not None:
                    return existing
                self._controls[network_id] = control

        logger.info(f"Registered tunnel control for {network.interface_name}")
        return control

    def register(self, network_id: str, control: TunnelControl) -> None:
        """Install a capability built elsewhere (network creation)."""
        with self._lock.write_locked():
            self._controls[network_id] = control

    def unregister(self, network_id: str) -> TunnelControl | None:
        """
        Remove a network's capability; the caller tears the interface down.

        Waits for an in-flight creation of the same network, so a lookup that
        already passed the store check cannot re-install a stale capability.
        Delete the network from the store before unregistering it.
        """
        creation_lock = self._creation_lock(network_id)
        with creation_lock:
            with self._lock.write_locked():
                control = self._controls.pop(network_id, None)
            self._discard_creation_lock(network_id, creation_lock)
        return control

    def network_ids(self) -> list[str]:
        """Networks with a registered capability."""
        with self._lock.read_locked():
            return list(self._controls)
