"""
Database base configuration and utilities.

This module provides the foundation for the desired-state store using Peewee
ORM with a SQLite backend.

Components:
    - db: Global SQLite database instance
    - BaseModel: Base class for all wghub database models
    - initialize_database / close_database: Lifecycle
"""

import peewee

from wghub.utils.logger import get_logger

logger = get_logger(__name__)


# =============================================================================
# Database Instance
# =============================================================================

# Global database instance - path set via initialize_database()
db = peewee.SqliteDatabase(None)


# =============================================================================
# Base Model
# =============================================================================


class BaseModel(peewee.Model):
    """Base model sharing the database connection."""

    class Meta:
        database = db


# =============================================================================
# Database Lifecycle
# =============================================================================


def initialize_database(db_path: str) -> None:
    """
    Connect to the database and create tables.

    Args:
        db_path: Path to the SQLite database file.

    Raises:
        peewee.OperationalError: If database connection fails.
    """
    # Import models here to avoid circular imports
    from wghub.db.network import Network
    from wghub.db.peer import Peer

    logger.debug(f"Initializing database at: {db_path}")

    try:
        if not db.is_closed():
            db.close()
        # WAL lets the background passes read while the CLI writes
        db.init(db_path, pragmas={"journal_mode": "wal", "busy_timeout": 5000})
        db.connect()
        db.create_tables([Network, Peer], safe=True)

        logger.info(f"Database initialized: {db_path}")
        logger.debug(
            f"Database contains {Network.select().count()} networks, "
            f"{Peer.select().count()} peers"
        )

    except peewee.OperationalError as e:
        logger.error(f"Failed to initialize database '{db_path}': {e}")
        raise


def close_database() -> None:
    """Close the database connection if open."""
    if not db.is_closed():
        db.close()
        logger.debug("Database connection closed")
