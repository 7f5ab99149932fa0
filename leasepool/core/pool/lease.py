"""Lease Manager - atomic acquisition of pool items

This module implements Compare-and-Swap (CAS) based lease acquisition,
ensuring that an item is handed to at most one caller at a time, with lazy
expiration of leases that were never confirmed.

Design:
- Lazy reclamation: expired leases are swept by the next acquire call,
  there is no background timer
- Random pick by offset over the available set (no ORDER BY RANDOM())
- Atomic claim using a conditional UPDATE (... WHERE id = ? AND state = 0),
  not a row lock; losing the race yields None rather than an internal retry
- Correctness comes from SQLite's own write atomicity, so it holds across
  threads and processes sharing one database file
"""

import logging
import random
import sqlite3
from typing import Optional

from leasepool.core.pool.errors import StoreUnavailable
from leasepool.core.pool.models import Item, ItemState
from leasepool.core.time import Clock, SystemClock
from leasepool.store import ConnectionFactory, read_snapshot, transaction


logger = logging.getLogger(__name__)

DEFAULT_LEASE_TTL_SECONDS = 15


class LeaseManager:
    """Hands out available items under a TTL-bounded lease

    Example:
        >>> manager = LeaseManager(factory, lease_ttl_seconds=15)
        >>> item = manager.acquire_one()
        >>> if item is None:
        ...     # pool fully leased right now, try later
        ...     pass
    """

    def __init__(
        self,
        connections: ConnectionFactory,
        lease_ttl_seconds: int = DEFAULT_LEASE_TTL_SECONDS,
        clock: Optional[Clock] = None,
        rng: Optional[random.Random] = None,
    ):
        """Initialize lease manager

        Args:
            connections: Per-thread connection source
            lease_ttl_seconds: Lease lifetime before it may be reclaimed
            clock: Time source (defaults to the wall clock)
            rng: Random source for offset selection
        """
        if lease_ttl_seconds <= 0:
            raise ValueError("lease_ttl_seconds must be positive")
        self.connections = connections
        self.lease_ttl_ms = int(lease_ttl_seconds * 1000)
        self.clock = clock or SystemClock()
        self.rng = rng or random.SystemRandom()

    def reclaim_expired(self) -> int:
        """Return every lease older than the TTL to the available set

        A lease taken at T is reclaimable from T + TTL onwards.

        Returns:
            Number of items reclaimed

        Raises:
            StoreUnavailable: If the database operation fails
        """
        cutoff = self.clock.now_ms() - self.lease_ttl_ms
        conn = self.connections.get_connection()
        try:
            # Cheap probe first so the common case never takes the write lock
            probe = conn.execute(
                "SELECT 1 FROM items WHERE state = ? AND leased_at <= ? LIMIT 1",
                (int(ItemState.LEASED), cutoff),
            ).fetchone()
            if probe is None:
                return 0

            with transaction(conn) as cur:
                cur.execute(
                    """
                    UPDATE items
                    SET state = ?, leased_at = 0
                    WHERE state = ? AND leased_at <= ?
                    """,
                    (int(ItemState.AVAILABLE), int(ItemState.LEASED), cutoff),
                )
                reclaimed = cur.rowcount
        except sqlite3.Error as e:
            logger.error(f"Failed to reclaim expired leases: {e}")
            raise StoreUnavailable(f"Failed to reclaim expired leases: {e}") from e

        if reclaimed:
            logger.info(f"Reclaimed {reclaimed} expired leases")
        return reclaimed

    def acquire_one(self) -> Optional[Item]:
        """Atomically lease one randomly chosen available item

        Steps:
        1. Reclaim expired leases
        2. COUNT available items (N); N == 0 -> None
        3. Pick r in [0, N) and read the r-th available item ordered by id
           (same snapshot as the count)
        4. UPDATE items SET state=leased WHERE id=... AND state=available
        5. rows affected == 1: success; otherwise another caller won -> None

        Returns:
            The leased Item, or None if nothing is allocatable right now
            (pool exhausted, or the race for the chosen item was lost)

        Raises:
            StoreUnavailable: If the database operation fails
        """
        self.reclaim_expired()

        conn = self.connections.get_connection()
        try:
            with read_snapshot(conn) as cur:
                available = cur.execute(
                    "SELECT COUNT(*) FROM items WHERE state = ?",
                    (int(ItemState.AVAILABLE),),
                ).fetchone()[0]

                if available == 0:
                    logger.debug("No available items")
                    return None

                offset = self.rng.randrange(available)
                row = cur.execute(
                    """
                    SELECT id, value, state, leased_at, created_at
                    FROM items
                    WHERE state = ?
                    ORDER BY id
                    LIMIT 1 OFFSET ?
                    """,
                    (int(ItemState.AVAILABLE), offset),
                ).fetchone()

            if row is None:
                # Available set shrank under us; same outcome as a lost race
                logger.debug(f"No available item at offset {offset}")
                return None

            candidate = Item.from_row(row)
            leased_at = self.clock.now_ms()

            with transaction(conn) as cur:
                cur.execute(
                    """
                    UPDATE items
                    SET state = ?, leased_at = ?
                    WHERE id = ? AND state = ?
                    """,
                    (int(ItemState.LEASED), leased_at, candidate.id, int(ItemState.AVAILABLE)),
                )
                won = cur.rowcount == 1

        except sqlite3.Error as e:
            logger.error(f"Failed to acquire lease: {e}")
            raise StoreUnavailable(f"Failed to acquire lease: {e}") from e

        if not won:
            logger.debug(f"Lost lease race for item {candidate.id}")
            return None

        logger.debug(f"Lease acquired: item={candidate.id}")
        return Item(
            id=candidate.id,
            value=candidate.value,
            state=ItemState.LEASED,
            leased_at=leased_at,
            created_at=candidate.created_at,
        )

    def release(self, item_id: int) -> bool:
        """Return one leased item to the pool before its TTL runs out

        Returns:
            True if the item was leased and is now available,
            False if it does not exist or was not leased

        Raises:
            StoreUnavailable: If the database operation fails
        """
        conn = self.connections.get_connection()
        try:
            with transaction(conn) as cur:
                cur.execute(
                    """
                    UPDATE items
                    SET state = ?, leased_at = 0
                    WHERE id = ? AND state = ?
                    """,
                    (int(ItemState.AVAILABLE), int(item_id), int(ItemState.LEASED)),
                )
                released = cur.rowcount == 1
        except sqlite3.Error as e:
            logger.error(f"Failed to release lease for item {item_id}: {e}")
            raise StoreUnavailable(f"Failed to release lease: {e}") from e

        if released:
            logger.info(f"Lease released: item={item_id}")
        return released
