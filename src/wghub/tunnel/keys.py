"""
WireGuard key material and interface configuration files.

Keys are produced by the `wg` tool itself (`wg genkey`, `wg pubkey` reading
the private key on stdin). The configuration file written here is the
minimal [Interface] section wg-quick needs; peers are never written to it,
they are pushed to the live interface by the reconciler.
"""

import os

from wghub.exceptions import ControlError
from wghub.tunnel.process import run_tool
from wghub.utils.logger import get_logger

logger = get_logger(__name__)

DEFAULT_TIMEOUT = 10.0


# =============================================================================
# Key Generation
# =============================================================================


def generate_private_key(wg_bin: str = "wg", timeout: float = DEFAULT_TIMEOUT) -> str:
    """Generate a new private key with `wg genkey`."""
    result = run_tool([wg_bin, "genkey"], timeout=timeout)
    return result.stdout.strip()


def derive_public_key(
    private_key: str, wg_bin: str = "wg", timeout: float = DEFAULT_TIMEOUT
) -> str:
    """Derive the public key of a private key with `wg pubkey`."""
    result = run_tool(
        [wg_bin, "pubkey"], timeout=timeout, input_text=private_key + "\n"
    )
    return result.stdout.strip()


def generate_keypair(
    wg_bin: str = "wg", timeout: float = DEFAULT_TIMEOUT
) -> tuple[str, str]:
    """
    Generate a WireGuard key pair.

    Returns:
        (private_key, public_key)
    """
    private_key = generate_private_key(wg_bin, timeout)
    return private_key, derive_public_key(private_key, wg_bin, timeout)


# =============================================================================
# Interface Configuration Files
# =============================================================================


def read_private_key(config_path: str) -> str | None:
    """
    Read the PrivateKey of the [Interface] section.

    Returns:
        The key, or None when the file does not exist or has no key.

    Raises:
        ControlError: If the file exists but cannot be read.
    """
    try:
        with open(config_path, encoding="utf-8") as f:
            lines = f.readlines()
    except FileNotFoundError:
        return None
    except OSError as e:
        raise ControlError(f"cannot read {config_path}: {e}") from e

    section = None
    for raw in lines:
        line = raw.split("#", 1)[0].strip()
        if not line:
            continue
        if line.startswith("[") and line.endswith("]"):
            section = line[1:-1].strip().lower()
            continue
        if section != "interface" or "=" not in line:
            continue
        key, value = line.split("=", 1)
        if key.strip().lower() == "privatekey":
            return value.strip() or None
    return None


def render_interface_config(private_key: str, address: str, listen_port: int) -> str:
    """Render the minimal [Interface] section."""
    return (
        "[Interface]\n"
        f"PrivateKey = {private_key}\n"
        f"Address = {address}\n"
        f"ListenPort = {listen_port}\n"
        "SaveConfig = false\n"
    )


def write_interface_config(
    config_path: str, private_key: str, address: str, listen_port: int
) -> None:
    """
    Write an interface configuration readable only by its owner.

    Raises:
        ControlError: If the directory or file cannot be written.
    """
    content = render_interface_config(private_key, address, listen_port)
    try:
        os.makedirs(os.path.dirname(config_path) or ".", mode=0o700, exist_ok=True)
        fd = os.open(config_path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(content)
        os.chmod(config_path, 0o600)
    except OSError as e:
        raise ControlError(f"cannot write {config_path}: {e}") from e
    logger.debug(f"Wrote interface configuration {config_path}")


def remove_interface_config(config_path: str) -> bool:
    """Delete an interface configuration; returns False when it was absent."""
    try:
        os.remove(config_path)
    except FileNotFoundError:
        return False
    except OSError as e:
        logger.warning(f"Failed to remove {config_path}: {e}")
        return False
    logger.debug(f"Removed interface configuration {config_path}")
    return True
