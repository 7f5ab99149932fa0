"""Thread-local SQLite connection factory.

sqlite3 connections must not be shared between threads that write
concurrently, so every thread gets its own connection to the same file.
Cross-connection atomicity is provided by SQLite itself (WAL + busy
timeout + BEGIN IMMEDIATE for writes).

Usage:
    factory = ConnectionFactory("/path/to/pool.sqlite")
    conn = factory.get_connection()
    with transaction(conn) as cur:
        cur.execute("UPDATE items SET state = 0 WHERE id = ?", (42,))
    factory.close_all()
"""

import logging
import sqlite3
import threading
from contextlib import contextmanager, suppress
from pathlib import Path
from typing import Iterator, List, Optional, Union

logger = logging.getLogger(__name__)

DEFAULT_BUSY_TIMEOUT_MS = 5000


def connect(db_path: Union[str, Path], busy_timeout_ms: int = DEFAULT_BUSY_TIMEOUT_MS) -> sqlite3.Connection:
    """
    Open a SQLite connection with pool-friendly PRAGMAs:
      - WAL journaling so readers never block the writer,
      - NORMAL synchronous,
      - busy_timeout so concurrent writers wait instead of failing,
      - foreign_keys ON.
    Autocommit mode (isolation_level=None): transactions are explicit.
    """
    conn = sqlite3.connect(
        str(db_path),
        check_same_thread=False,
        isolation_level=None,
        timeout=busy_timeout_ms / 1000.0,
    )
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA journal_mode=WAL")
    conn.execute("PRAGMA synchronous=NORMAL")
    conn.execute("PRAGMA foreign_keys=ON")
    conn.execute(f"PRAGMA busy_timeout={int(busy_timeout_ms)}")
    return conn


@contextmanager
def transaction(conn: sqlite3.Connection) -> Iterator[sqlite3.Cursor]:
    """
    BEGIN IMMEDIATE (write txn) + COMMIT/ROLLBACK. Yields a cursor.

    The write lock is taken up front, so a conditional UPDATE inside the
    block sees the latest committed state.
    """
    cur = conn.cursor()
    cur.execute("BEGIN IMMEDIATE")
    try:
        yield cur
        cur.execute("COMMIT")
    except BaseException:
        with suppress(sqlite3.Error):
            cur.execute("ROLLBACK")
        raise
    finally:
        with suppress(sqlite3.Error):
            cur.close()


@contextmanager
def read_snapshot(conn: sqlite3.Connection) -> Iterator[sqlite3.Cursor]:
    """
    BEGIN DEFERRED (read txn) + COMMIT. Yields a cursor.

    Every statement inside the block reads the same committed snapshot.
    """
    cur = conn.cursor()
    cur.execute("BEGIN")
    try:
        yield cur
        cur.execute("COMMIT")
    except BaseException:
        with suppress(sqlite3.Error):
            cur.execute("ROLLBACK")
        raise
    finally:
        with suppress(sqlite3.Error):
            cur.close()


class ConnectionFactory:
    """Hands out one connection per thread for a single database file"""

    def __init__(self, db_path: Union[str, Path], busy_timeout_ms: int = DEFAULT_BUSY_TIMEOUT_MS):
        self.db_path = Path(db_path)
        self.busy_timeout_ms = busy_timeout_ms
        self._local = threading.local()
        self._lock = threading.Lock()
        self._connections: List[sqlite3.Connection] = []

    def get_connection(self) -> sqlite3.Connection:
        """Get (or lazily open) the calling thread's connection"""
        conn = getattr(self._local, "conn", None)
        if conn is None:
            conn = connect(self.db_path, self.busy_timeout_ms)
            self._local.conn = conn
            with self._lock:
                self._connections.append(conn)
            logger.debug(f"Opened connection to {self.db_path} for thread {threading.get_ident()}")
        return conn

    def close_thread_connection(self) -> None:
        conn = getattr(self._local, "conn", None)
        if conn is None:
            return
        self._local.conn = None
        with self._lock:
            if conn in self._connections:
                self._connections.remove(conn)
        conn.close()

    def close_all(self) -> None:
        """Close every connection opened by this factory"""
        with self._lock:
            connections, self._connections = self._connections, []
        for conn in connections:
            with suppress(sqlite3.Error):
                conn.close()
        self._local = threading.local()
        logger.debug(f"Closed {len(connections)} connections to {self.db_path}")


# Global factory (one per process)
_factory: Optional[ConnectionFactory] = None


def init_factory(db_path: Union[str, Path], busy_timeout_ms: int = DEFAULT_BUSY_TIMEOUT_MS) -> ConnectionFactory:
    """Install the process-wide factory, replacing any previous one"""
    global _factory
    if _factory is not None:
        _factory.close_all()
    _factory = ConnectionFactory(db_path, busy_timeout_ms)
    return _factory


def get_factory() -> Optional[ConnectionFactory]:
    return _factory


def shutdown_factory() -> None:
    global _factory
    if _factory is not None:
        _factory.close_all()
        _factory = None
