"""Bulk Mutator - batched ingestion, eviction and forced release

Ingestion is INSERT OR IGNORE against the UNIQUE(value) constraint, so a
value that is already stored is skipped without touching its row. Each
batch commits on its own; a failing batch is rolled back and aborts the
remaining ones, but never undoes batches that already committed.
"""

import logging
import sqlite3
from itertools import islice
from typing import Iterable, Iterator, List, Optional

from leasepool.core.pool.errors import PartialBatchFailure, StoreUnavailable, ValidationRejected
from leasepool.core.pool.models import Item, ItemState
from leasepool.core.pool.validation import filter_valid, is_valid, normalize
from leasepool.core.time import Clock, SystemClock
from leasepool.store import ConnectionFactory, transaction

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 10_000

# Stay well below SQLITE_MAX_VARIABLE_NUMBER on older builds (999)
_DELETE_CHUNK = 500

_INSERT_SQL = (
    "INSERT OR IGNORE INTO items (value, state, leased_at, created_at) "
    "VALUES (?, 0, 0, ?)"
)


def _batched(values: Iterable[str], size: int) -> Iterator[List[str]]:
    it = iter(values)
    while True:
        batch = list(islice(it, size))
        if not batch:
            return
        yield batch


class BulkMutator:
    """Administrative writes against the item pool"""

    def __init__(
        self,
        connections: ConnectionFactory,
        batch_size: int = DEFAULT_BATCH_SIZE,
        clock: Optional[Clock] = None,
    ):
        if batch_size <= 0:
            raise ValueError("batch_size must be positive")
        self.connections = connections
        self.batch_size = batch_size
        self.clock = clock or SystemClock()

    def ingest(self, values: Iterable[object]) -> int:
        """Insert values in batches, skipping malformed and duplicate ones

        The input is consumed lazily, so a generator over a large file is
        never materialized beyond one batch.

        Returns:
            Number of rows newly created

        Raises:
            PartialBatchFailure: A batch failed; its rows were rolled back and
                later batches were not attempted
        """
        inserted = 0
        batch_index = -1
        for batch_index, batch in enumerate(_batched(filter_valid(values), self.batch_size)):
            try:
                count = self._insert_batch(batch)
            except sqlite3.Error as e:
                logger.error(
                    f"Ingest batch {batch_index} failed ({len(batch)} values), "
                    f"{inserted} rows committed by earlier batches: {e}"
                )
                raise PartialBatchFailure(batch_index, inserted, e) from e
            inserted += count
            logger.debug(f"Ingest batch {batch_index}: {count}/{len(batch)} new rows")

        logger.info(f"Ingested {inserted} new items in {batch_index + 1} batches")
        return inserted

    def _insert_batch(self, batch: List[str]) -> int:
        created_at = self.clock.now_ms()
        count = 0
        conn = self.connections.get_connection()
        with transaction(conn) as cur:
            for value in batch:
                cur.execute(_INSERT_SQL, (value, created_at))
                if cur.rowcount > 0:
                    count += 1
        return count

    def add_one(self, value: object) -> bool:
        """Insert a single value

        Returns:
            True if a row was created, False if the value already existed

        Raises:
            ValidationRejected: The value is not well-formed
            StoreUnavailable: If the database operation fails
        """
        if not is_valid(value):
            raise ValidationRejected(value)
        try:
            return self._insert_batch([normalize(value)]) == 1
        except sqlite3.Error as e:
            logger.error(f"Failed to add item: {e}")
            raise StoreUnavailable(f"Failed to add item: {e}") from e

    def evict_by_ids(self, ids: Iterable[int]) -> int:
        """Permanently delete items by identifier

        Unknown ids are ignored. All deletions commit together.

        Returns:
            Number of rows removed

        Raises:
            StoreUnavailable: If the database operation fails
        """
        unique_ids = sorted({int(i) for i in ids})
        if not unique_ids:
            return 0

        deleted = 0
        conn = self.connections.get_connection()
        try:
            with transaction(conn) as cur:
                for start in range(0, len(unique_ids), _DELETE_CHUNK):
                    chunk = unique_ids[start:start + _DELETE_CHUNK]
                    placeholders = ",".join("?" * len(chunk))
                    cur.execute(f"DELETE FROM items WHERE id IN ({placeholders})", chunk)
                    deleted += cur.rowcount
        except sqlite3.Error as e:
            logger.error(f"Failed to delete {len(unique_ids)} items: {e}")
            raise StoreUnavailable(f"Failed to delete items: {e}") from e

        logger.info(f"Deleted {deleted} of {len(unique_ids)} requested items")
        return deleted

    def force_release_all(self) -> int:
        """Return every leased item to the pool regardless of TTL

        Returns:
            Number of items released

        Raises:
            StoreUnavailable: If the database operation fails
        """
        conn = self.connections.get_connection()
        try:
            with transaction(conn) as cur:
                cur.execute(
                    "UPDATE items SET state = ?, leased_at = 0 WHERE state = ?",
                    (int(ItemState.AVAILABLE), int(ItemState.LEASED)),
                )
                released = cur.rowcount
        except sqlite3.Error as e:
            logger.error(f"Failed to release all leases: {e}")
            raise StoreUnavailable(f"Failed to release all leases: {e}") from e

        logger.info(f"Force-released {released} leases")
        return released

    def get(self, item_id: int) -> Optional[Item]:
        """Read one item by id (None if absent)"""
        conn = self.connections.get_connection()
        try:
            row = conn.execute(
                "SELECT id, value, state, leased_at, created_at FROM items WHERE id = ?",
                (int(item_id),),
            ).fetchone()
        except sqlite3.Error as e:
            logger.error(f"Failed to read item {item_id}: {e}")
            raise StoreUnavailable(f"Failed to read item: {e}") from e
        return Item.from_row(row) if row else None

    def iter_values(self, chunk_size: int = DEFAULT_BATCH_SIZE) -> Iterator[str]:
        """Yield every stored value ordered by id, reading in keyset chunks"""
        conn = self.connections.get_connection()
        last_id = 0
        while True:
            try:
                rows = conn.execute(
                    "SELECT id, value FROM items WHERE id > ? ORDER BY id LIMIT ?",
                    (last_id, chunk_size),
                ).fetchall()
            except sqlite3.Error as e:
                logger.error(f"Failed to read items after id {last_id}: {e}")
                raise StoreUnavailable(f"Failed to read items: {e}") from e
            if not rows:
                return
            for row in rows:
                yield row["value"]
            last_id = rows[-1]["id"]
