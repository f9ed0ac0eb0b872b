"""
Process context of the hub.

One HubContext is built per process (CLI invocation or daemon) and passed
to every service function. It owns the only shared mutable state of the
engine, the capability registry and the activity map, each behind its own
lock, together with the collaborators the services need.

Usage:
    from wghub.config import config
    from wghub.context import HubContext

    ctx = HubContext.create(config)
    networks.create_network(ctx, request)
"""

from __future__ import annotations

import datetime
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass, field

from wghub.config import HubConfig
from wghub.db.network import Network
from wghub.db.store import Store
from wghub.services.activity import ActivityTracker
from wghub.services.address import hub_address
from wghub.services.liveness import LivenessTracker
from wghub.services.registry import ControlFactory, ManagerRegistry
from wghub.tunnel.base import TunnelControl
from wghub.tunnel.keys import generate_keypair
from wghub.tunnel.wireguard import WireGuardControl

KeyGenerator = Callable[[], tuple[str, str]]


def wireguard_factory(config: HubConfig) -> ControlFactory:
    """Build WireGuardControl instances for stored networks."""

    def factory(network: Network) -> TunnelControl:
        control = WireGuardControl.from_config(
            network.interface_name,
            config,
            address=hub_address(network.cidr),
            port=network.listen_port or config.BASE_LISTEN_PORT,
        )
        control.check_tools()
        return control

    return factory


@dataclass
class HubContext:
    """Everything a service call needs."""

    config: HubConfig
    store: Store
    registry: ManagerRegistry
    activity: ActivityTracker
    liveness: LivenessTracker
    keygen: KeyGenerator
    clock: Callable[[], float] = time.time
    # Serializes address allocation and peer insertion across threads
    allocation_lock: threading.Lock = field(default_factory=threading.Lock)

    @classmethod
    def create(
        cls,
        config: HubConfig,
        store: Store | None = None,
        control_factory: ControlFactory | None = None,
        keygen: KeyGenerator | None = None,
        clock: Callable[[], float] = time.time,
    ) -> HubContext:
        """Wire up a context from the configuration."""
        store = store or Store()
        activity = ActivityTracker()
        if keygen is None:

            def keygen() -> tuple[str, str]:
                return generate_keypair(config.WG_BIN, config.COMMAND_TIMEOUT_SECONDS)

        return cls(
            config=config,
            store=store,
            registry=ManagerRegistry(
                store, control_factory or wireguard_factory(config)
            ),
            activity=activity,
            liveness=LivenessTracker(
                activity,
                activity_window=config.ACTIVITY_WINDOW_SECONDS,
                handshake_window=config.HANDSHAKE_WINDOW_SECONDS,
            ),
            keygen=keygen,
            clock=clock,
        )

    def now(self) -> float:
        return self.clock()

    def now_datetime(self) -> datetime.datetime:
        return datetime.datetime.fromtimestamp(self.clock())
