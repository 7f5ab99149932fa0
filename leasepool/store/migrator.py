"""Schema migrations for the pool database

Each file in migrations/ is named schema_vNN_<label>.sql and is applied
at most once, in version order, inside its own BEGIN IMMEDIATE
transaction together with the schema_version row that records it. DDL in
the files uses IF NOT EXISTS so a half-provisioned database can be re-run safely.
"""

import logging
import re
import sqlite3
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterator, List, Union

from leasepool.core.time import now_ms

logger = logging.getLogger(__name__)

MIGRATIONS_DIR = Path(__file__).parent / "migrations"

_FILENAME_RE = re.compile(r"^schema_v(\d+)(?:_[a-z0-9_]+)?\.sql$")


class MigrationError(Exception):
    """A migration file failed; its changes were rolled back"""
    pass


@dataclass(frozen=True)
class Migration:
    version: int
    path: Path

    @property
    def label(self) -> str:
        return f"v{self.version:02d}"


def discover(migrations_dir: Path = MIGRATIONS_DIR) -> List[Migration]:
    """Migration files under migrations_dir, lowest version first"""
    found = []
    for path in migrations_dir.glob("schema_v*.sql"):
        m = _FILENAME_RE.match(path.name)
        if m:
            found.append(Migration(int(m.group(1)), path))
    return sorted(found, key=lambda mig: mig.version)


def split_statements(script: str) -> Iterator[str]:
    """Yield the complete SQL statements of a script, one at a time

    Lines are accumulated until sqlite3.complete_statement() accepts the
    buffer, so trigger bodies with inner semicolons stay whole.
    """
    buf = ""
    for line in script.splitlines(keepends=True):
        buf += line
        if sqlite3.complete_statement(buf):
            statement = buf.strip()
            buf = ""
            if statement:
                yield statement
    # Trailing text without a terminating semicolon; comment-only tails are dropped
    tail = "\n".join(line for line in buf.splitlines() if not line.strip().startswith("--")).strip()
    if tail:
        yield tail


class Migrator:
    def __init__(self, db_path: Union[str, Path], migrations_dir: Path = MIGRATIONS_DIR):
        self.db_path = Path(db_path)
        self.migrations_dir = migrations_dir

    def _open(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self.db_path), isolation_level=None)
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS schema_version (
                version INTEGER PRIMARY KEY,
                filename TEXT NOT NULL,
                applied_at INTEGER NOT NULL
            )
            """
        )
        return conn

    @staticmethod
    def current_version(conn: sqlite3.Connection) -> int:
        row = conn.execute("SELECT COALESCE(MAX(version), 0) FROM schema_version").fetchone()
        return int(row[0])

    def pending(self, conn: sqlite3.Connection) -> List[Migration]:
        current = self.current_version(conn)
        return [mig for mig in discover(self.migrations_dir) if mig.version > current]

    def apply(self, conn: sqlite3.Connection, migration: Migration) -> bool:
        """Run one file and record it atomically

        The write lock is taken before the version is re-read, so when
        several processes migrate the same file at once exactly one of
        them applies each migration and the others skip it.

        Returns:
            True if applied, False if another connection already applied it

        Raises:
            MigrationError: The script failed; nothing from it was kept
        """
        script = migration.path.read_text(encoding="utf-8")
        try:
            conn.execute("BEGIN IMMEDIATE")
            if self.current_version(conn) >= migration.version:
                conn.execute("ROLLBACK")
                logger.debug(f"Migration {migration.label} already applied, skipping")
                return False

            logger.info(f"Applying migration {migration.label}: {migration.path.name}")
            for statement in split_statements(script):
                conn.execute(statement)
            conn.execute(
                "INSERT INTO schema_version (version, filename, applied_at) VALUES (?, ?, ?)",
                (migration.version, migration.path.name, now_ms()),
            )
            conn.execute("COMMIT")
        except sqlite3.Error as e:
            if conn.in_transaction:
                conn.execute("ROLLBACK")
            logger.error(f"Migration {migration.label} failed: {e}")
            raise MigrationError(f"Migration {migration.label} ({migration.path.name}) failed: {e}") from e
        return True

    def migrate(self) -> int:
        """Apply every pending migration

        Returns:
            Number of migrations this call applied
        """
        conn = self._open()
        try:
            applied = [mig for mig in self.pending(conn) if self.apply(conn, mig)]
        finally:
            conn.close()

        if applied:
            logger.info(f"Database {self.db_path.name} migrated to {applied[-1].label}")
        return len(applied)

    def status(self) -> Dict[str, Any]:
        available = discover(self.migrations_dir)
        latest = available[-1].version if available else 0

        if not self.db_path.exists():
            return {
                "current_version": 0,
                "latest_version": latest,
                "pending_count": len(available),
                "applied_migrations": [],
                "pending_migrations": [mig.label for mig in available],
                "error": "Database not found",
            }

        conn = self._open()
        try:
            current = self.current_version(conn)
        finally:
            conn.close()

        return {
            "current_version": current,
            "latest_version": latest,
            "pending_count": sum(1 for mig in available if mig.version > current),
            "applied_migrations": [mig.label for mig in available if mig.version <= current],
            "pending_migrations": [mig.label for mig in available if mig.version > current],
        }


def auto_migrate(db_path: Union[str, Path]) -> int:
    """Bring db_path up to the newest bundled schema"""
    return Migrator(db_path).migrate()


def get_migration_status(db_path: Union[str, Path]) -> Dict[str, Any]:
    return Migrator(db_path).status()
