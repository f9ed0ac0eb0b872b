"""
Process-wide CLI state.

The main callback records the global options; the HubContext (and the
database connection behind it) is only built when a command needs it.
"""

from wghub.config import config
from wghub.context import HubContext
from wghub.db.base import initialize_database

_ctx: HubContext | None = None


def get_context() -> HubContext:
    """Initialize the database and build the context on first use."""
    global _ctx
    if _ctx is None:
        initialize_database(config.DB_FILE)
        _ctx = HubContext.create(config)
    return _ctx
