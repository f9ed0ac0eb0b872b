"""
Logging setup for wghub.

All modules obtain their logger through get_logger(__name__), which returns
the process-wide loguru logger bound to the module name. configure_logging()
installs the sinks once at process start (CLI callback or daemon).

Usage:
    from wghub.utils.logger import get_logger

    logger = get_logger(__name__)
    logger.info(f"Interface {name} is up")
"""

import sys
import traceback

from loguru import logger as _logger

from wghub.models.enums import LogLevel

# Loguru level names for each configured verbosity
_LEVEL_MAP: dict[LogLevel, str] = {
    LogLevel.FULL: "TRACE",
    LogLevel.DEBUG: "DEBUG",
    LogLevel.INFO: "INFO",
    LogLevel.WARNING: "WARNING",
}

_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{extra[name]}</cyan> - <level>{message}</level>"
)

# Records logged through the bare loguru logger still need extra["name"]
_logger.configure(extra={"name": "wghub"})


def get_logger(name: str):
    """Return a logger bound to a module name."""
    return _logger.bind(name=name)


def configure_logging(
    level: LogLevel | str = LogLevel.INFO, log_file: str = ""
) -> None:
    """
    Install the stderr sink (and optionally a rotating file sink).

    Args:
        level: Verbosity, either a LogLevel or its string value.
        log_file: Optional path of a log file; empty disables file logging.
    """
    level = LogLevel(level)
    loguru_level = _LEVEL_MAP[level]

    _logger.remove()
    _logger.add(sys.stderr, level=loguru_level, format=_FORMAT, enqueue=False)
    if log_file:
        _logger.add(
            log_file,
            level=loguru_level,
            format=_FORMAT,
            rotation="10 MB",
            retention=5,
        )


def format_traceback(exc: BaseException) -> str:
    """Render an exception with its traceback as a single string."""
    return "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
