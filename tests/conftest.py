"""Shared fixtures: temporary database, fake tunnel control, fake clock."""

import dataclasses
import os
import threading

import pytest

from wghub.config import HubConfig
from wghub.context import HubContext
from wghub.db.base import close_database, initialize_database
from wghub.exceptions import ControlError
from wghub.models.requests import NetworkCreateRequest
from wghub.services import networks
from wghub.tunnel.base import LiveSnapshot, TunnelControl
from wghub.tunnel.keys import read_private_key, write_interface_config

T0 = 1_700_000_000.0


def fake_public_key(private_key: str) -> str:
    return f"pub-{private_key}"


class FakeClock:
    def __init__(self, now: float = T0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeKeyGen:
    def __init__(self):
        self.count = 0

    def __call__(self) -> tuple[str, str]:
        self.count += 1
        private_key = f"priv-{self.count}"
        return private_key, fake_public_key(private_key)


class FakeTunnelControl(TunnelControl):
    """In-memory interface recording every call."""

    def __init__(self, interface: str, config_dir: str):
        super().__init__(interface)
        self.config_dir = config_dir
        self.peers: dict[str, LiveSnapshot] = {}
        self.up = False
        self.calls: list[tuple] = []
        self.fail_add: set[str] = set()
        self.fail_remove = False
        self.fail_list = False

    def bring_up(self) -> None:
        self.calls.append(("up",))
        self.up = True

    def bring_down(self) -> None:
        self.calls.append(("down",))
        self.up = False

    def add_peer(self, public_key: str, allowed_ips: list[str]) -> None:
        self.calls.append(("add", public_key, tuple(allowed_ips)))
        if public_key in self.fail_add:
            raise ControlError("wg set failed", self.interface)
        snapshot = self.peers.get(public_key) or LiveSnapshot(public_key=public_key)
        snapshot.allowed_ips = list(allowed_ips)
        self.peers[public_key] = snapshot

    def remove_peer(self, public_key: str) -> None:
        self.calls.append(("remove", public_key))
        if self.fail_remove:
            raise ControlError("wg set failed", self.interface)
        self.peers.pop(public_key, None)

    def list_peers(self) -> dict[str, LiveSnapshot]:
        self.calls.append(("list",))
        if self.fail_list:
            raise ControlError("interface does not exist", self.interface)
        return {
            k: dataclasses.replace(v, allowed_ips=list(v.allowed_ips))
            for k, v in self.peers.items()
        }

    def public_key(self) -> str:
        path = os.path.join(self.config_dir, f"{self.interface}.conf")
        private_key = read_private_key(path)
        if private_key is None:
            private_key = f"generated-{self.interface}"
            write_interface_config(path, private_key, "10.10.0.1/24", 51820)
        return fake_public_key(private_key)

    # Test helpers

    def set_live(
        self,
        public_key: str,
        allowed_ips: list[str] | None = None,
        handshake: float = 0,
        rx: int = 0,
        tx: int = 0,
        endpoint: str | None = None,
    ) -> LiveSnapshot:
        snapshot = LiveSnapshot(
            public_key=public_key,
            endpoint=endpoint,
            allowed_ips=allowed_ips or [],
            latest_handshake=int(handshake),
            rx_bytes=rx,
            tx_bytes=tx,
        )
        self.peers[public_key] = snapshot
        return snapshot

    def count(self, op: str) -> int:
        return sum(1 for call in self.calls if call[0] == op)


class FakeControlFactory:
    """Hands out one FakeTunnelControl per interface name."""

    def __init__(self, config_dir: str):
        self.config_dir = config_dir
        self.controls: dict[str, FakeTunnelControl] = {}
        self.built = 0
        self._lock = threading.Lock()

    def __call__(self, network) -> FakeTunnelControl:
        with self._lock:
            self.built += 1
            control = self.controls.get(network.interface_name)
            if control is None:
                control = FakeTunnelControl(network.interface_name, self.config_dir)
                self.controls[network.interface_name] = control
            return control


@pytest.fixture
def hub_config(tmp_path):
    cfg = HubConfig()
    cfg.DB_FILE = str(tmp_path / "wghub.db")
    cfg.WG_CONFIG_DIR = str(tmp_path / "wireguard")
    cfg.SERVER_ENDPOINT = "vpn.example.com"
    cfg.STARTUP_SETTLE_SECONDS = 0
    return cfg


@pytest.fixture
def database(hub_config):
    initialize_database(hub_config.DB_FILE)
    yield
    close_database()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def factory(hub_config):
    return FakeControlFactory(hub_config.WG_CONFIG_DIR)


@pytest.fixture
def keygen():
    return FakeKeyGen()


@pytest.fixture
def ctx(hub_config, database, factory, keygen, clock):
    return HubContext.create(
        hub_config, control_factory=factory, keygen=keygen, clock=clock
    )


@pytest.fixture
def network(ctx):
    return networks.create_network(
        ctx, NetworkCreateRequest(name="office", cidr="10.10.0.0/24")
    )


@pytest.fixture
def control(network, factory):
    return factory.controls[network.interface_name]
