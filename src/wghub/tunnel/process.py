"""Subprocess runner shared by the tunnel tooling."""

import subprocess

from wghub.exceptions import ControlError
from wghub.utils.logger import get_logger

logger = get_logger(__name__)


def run_tool(
    argv: list[str],
    *,
    timeout: float,
    input_text: str | None = None,
    check: bool = True,
    interface: str | None = None,
) -> subprocess.CompletedProcess:
    """
    Run an external tool and capture its output.

    Args:
        argv: Command and arguments.
        timeout: Seconds before the process is killed.
        input_text: Optional data written to stdin.
        check: Raise ControlError on a non-zero exit status.
        interface: Interface name attached to raised errors.

    Raises:
        ControlError: Tool missing, timed out, or (with check) failed.
    """
    logger.trace(f"Running: {' '.join(argv)}")
    try:
        result = subprocess.run(
            argv,
            input=input_text,
            capture_output=True,
            text=True,
            timeout=timeout,
        )
    except FileNotFoundError as e:
        raise ControlError(f"{argv[0]} not found", interface) from e
    except subprocess.TimeoutExpired as e:
        raise ControlError(
            f"'{' '.join(argv[:3])}' timed out after {timeout}s", interface
        ) from e

    if check and result.returncode != 0:
        detail = (result.stderr or result.stdout).strip()
        raise ControlError(
            f"'{' '.join(argv[:3])}' exited with {result.returncode}: {detail}",
            interface,
        )
    return result
