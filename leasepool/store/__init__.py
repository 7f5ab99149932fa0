"""Store module - SQLite database management"""

import logging
from pathlib import Path
from typing import Union

from .migrator import MigrationError, auto_migrate, get_migration_status
from .connection_factory import (
    ConnectionFactory,
    connect,
    transaction,
    read_snapshot,
    init_factory,
    get_factory,
    shutdown_factory,
)

logger = logging.getLogger(__name__)

__all__ = [
    "init_db",
    "ensure_migrations",
    "get_migration_status",
    "MigrationError",
    "ConnectionFactory",
    "connect",
    "transaction",
    "read_snapshot",
    "init_factory",
    "get_factory",
    "shutdown_factory",
]


def init_db(db_path: Union[str, Path]) -> Path:
    """
    Create the database file (if needed) and bring the schema up to date

    Workflow:
    1. Create the parent directory
    2. Create the file in WAL mode
    3. Apply every pending migration

    Returns:
        Path to the database file
    """
    db_path = Path(db_path)
    db_path.parent.mkdir(parents=True, exist_ok=True)

    if not db_path.exists():
        logger.info(f"Creating new database: {db_path}")
        conn = connect(db_path)
        conn.close()

    migrated = ensure_migrations(db_path)
    if migrated > 0:
        logger.info(f"Applied {migrated} migrations, database is ready")
    return db_path


def ensure_migrations(db_path: Union[str, Path]) -> int:
    """
    Apply pending migrations to an existing database

    Returns:
        Number of migrations applied

    Raises:
        MigrationError: A migration failed
    """
    db_path = Path(db_path)
    if not db_path.exists():
        logger.warning(f"Database not found: {db_path}, skipping migrations")
        return 0

    try:
        return auto_migrate(db_path)
    except MigrationError as e:
        logger.error(f"Migration failed: {e}", exc_info=True)
        raise
