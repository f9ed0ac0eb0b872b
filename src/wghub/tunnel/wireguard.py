"""
WireGuard tunnel control via the wg / wg-quick / ip command line tools.

Command mapping:
    bring_up      wg-quick up <if>          (skipped when `ip link show` finds it)
    bring_down    wg-quick down <if>        (errors ignored)
    add_peer      wg set <if> peer <k> allowed-ips <a,b>
    remove_peer   wg set <if> peer <k> remove
    list_peers    wg show <if> dump
    public_key    wg pubkey < PrivateKey from <config_dir>/<if>.conf

Missing configuration:
    public_key() on an interface without a configuration file generates a
    private key and writes a minimal [Interface] section (default address
    and listen port given at construction) before deriving the key, so the
    call is safe to repeat.
"""

from __future__ import annotations

import os
import shutil
from typing import TYPE_CHECKING

from wghub.exceptions import ControlError
from wghub.tunnel.base import LiveSnapshot, TunnelControl
from wghub.tunnel.dump import parse_dump
from wghub.tunnel.keys import (
    derive_public_key,
    generate_private_key,
    read_private_key,
    write_interface_config,
)
from wghub.tunnel.process import run_tool
from wghub.utils.logger import get_logger

if TYPE_CHECKING:
    from wghub.config import HubConfig

logger = get_logger(__name__)


class WireGuardControl(TunnelControl):
    """Subprocess-backed control of one WireGuard interface."""

    def __init__(
        self,
        interface: str,
        config_dir: str = "/etc/wireguard",
        default_address: str = "10.10.0.1/24",
        default_port: int = 51820,
        wg_bin: str = "wg",
        wg_quick_bin: str = "wg-quick",
        ip_bin: str = "ip",
        timeout: float = 10.0,
    ):
        super().__init__(interface)
        self.config_dir = config_dir
        self.default_address = default_address
        self.default_port = default_port
        self.wg_bin = wg_bin
        self.wg_quick_bin = wg_quick_bin
        self.ip_bin = ip_bin
        self.timeout = timeout

    @classmethod
    def from_config(
        cls, interface: str, config: HubConfig, address: str, port: int
    ) -> WireGuardControl:
        """Build a control from the hub configuration."""
        return cls(
            interface,
            config_dir=config.WG_CONFIG_DIR,
            default_address=address,
            default_port=port,
            wg_bin=config.WG_BIN,
            wg_quick_bin=config.WG_QUICK_BIN,
            ip_bin=config.IP_BIN,
            timeout=config.COMMAND_TIMEOUT_SECONDS,
        )

    @property
    def config_path(self) -> str:
        return os.path.join(self.config_dir, f"{self.interface}.conf")

    def check_tools(self) -> None:
        """
        Verify the command line tools are installed.

        Raises:
            ControlError: If wg or wg-quick is missing.
        """
        for tool in (self.wg_bin, self.wg_quick_bin):
            if shutil.which(tool) is None:
                raise ControlError(f"{tool} not found in PATH", self.interface)

    def _run(self, *args: str, check: bool = True, input_text: str | None = None):
        return run_tool(
            list(args),
            timeout=self.timeout,
            check=check,
            input_text=input_text,
            interface=self.interface,
        )

    # =========================================================================
    # Interface Lifecycle
    # =========================================================================

    def is_up(self) -> bool:
        """Check whether the interface exists."""
        try:
            result = self._run(self.ip_bin, "link", "show", self.interface, check=False)
        except ControlError as e:
            logger.debug(f"Could not query link {self.interface}: {e}")
            return False
        return result.returncode == 0

    def bring_up(self) -> None:
        if self.is_up():
            logger.debug(f"Interface {self.interface} already up")
            return
        self._run(self.wg_quick_bin, "up", self.interface)
        logger.info(f"Interface {self.interface} is up")

    def bring_down(self) -> None:
        try:
            result = self._run(self.wg_quick_bin, "down", self.interface, check=False)
        except ControlError as e:
            logger.debug(f"Ignoring bring-down failure on {self.interface}: {e}")
            return
        if result.returncode == 0:
            logger.info(f"Interface {self.interface} is down")
        else:
            logger.debug(
                f"wg-quick down {self.interface} exited {result.returncode} "
                f"(treated as already down)"
            )

    # =========================================================================
    # Peers
    # =========================================================================

    def add_peer(self, public_key: str, allowed_ips: list[str]) -> None:
        self._run(
            self.wg_bin,
            "set",
            self.interface,
            "peer",
            public_key,
            "allowed-ips",
            ",".join(allowed_ips),
        )
        logger.debug(f"Added peer {public_key[:8]}... to {self.interface}")

    def remove_peer(self, public_key: str) -> None:
        self._run(self.wg_bin, "set", self.interface, "peer", public_key, "remove")
        logger.debug(f"Removed peer {public_key[:8]}... from {self.interface}")

    def list_peers(self) -> dict[str, LiveSnapshot]:
        result = self._run(self.wg_bin, "show", self.interface, "dump")
        return parse_dump(result.stdout)

    # =========================================================================
    # Keys
    # =========================================================================

    def public_key(self) -> str:
        private_key = read_private_key(self.config_path)
        if private_key is None:
            if os.path.exists(self.config_path):
                raise ControlError(
                    f"{self.config_path} has no PrivateKey", self.interface
                )
            logger.warning(
                f"No configuration for {self.interface}, generating a new key"
            )
            private_key = generate_private_key(self.wg_bin, self.timeout)
            write_interface_config(
                self.config_path, private_key, self.default_address, self.default_port
            )
        return derive_public_key(private_key, self.wg_bin, self.timeout)
