"""Stats Cache - time-bounded aggregate counts

One snapshot per cache object, shared by every thread of the process. A
read inside the freshness window never touches the store; concurrent
refreshes after expiry are allowed to race (last writer wins), since
duplicate refresh queries only cost time.
"""

import logging
import sqlite3
from typing import Optional, Tuple

from leasepool.core.pool.errors import StoreUnavailable
from leasepool.core.pool.models import ItemState, PoolStats
from leasepool.core.time import Clock, SystemClock
from leasepool.store import ConnectionFactory, read_snapshot

logger = logging.getLogger(__name__)

DEFAULT_STATS_TTL_SECONDS = 30
DEFAULT_APPROX_THRESHOLD = 100_000


class StatsCache:
    """Cached {total, leased, available} with an approximate large-pool path

    The path is chosen from the real row count. For pools larger than
    approx_threshold, total is then reported from the id span
    (MAX(id) - MIN(id) + 1, an index-only lookup that over-counts deleted
    ids) while leased stays exact; such snapshots are tagged
    approximate=True.
    """

    def __init__(
        self,
        connections: ConnectionFactory,
        ttl_seconds: int = DEFAULT_STATS_TTL_SECONDS,
        approx_threshold: int = DEFAULT_APPROX_THRESHOLD,
        clock: Optional[Clock] = None,
    ):
        self.connections = connections
        self.ttl_ms = int(ttl_seconds * 1000)
        self.approx_threshold = approx_threshold
        self.clock = clock or SystemClock()
        # (taken_at_ms, stats); replaced as a whole so readers never see a torn pair
        self._snapshot: Optional[Tuple[int, PoolStats]] = None

    def get_stats(self) -> PoolStats:
        """Return the cached snapshot, refreshing it once it is older than the TTL

        Raises:
            StoreUnavailable: If the refresh query fails
        """
        now = self.clock.now_ms()
        snapshot = self._snapshot
        if snapshot is not None and now - snapshot[0] < self.ttl_ms:
            return snapshot[1]

        stats = self._query()
        self._snapshot = (now, stats)
        logger.debug(f"Stats refreshed: {stats}")
        return stats

    def invalidate(self) -> None:
        """Drop the snapshot so the next read hits the store"""
        self._snapshot = None

    def _query(self) -> PoolStats:
        conn = self.connections.get_connection()
        try:
            with read_snapshot(conn) as cur:
                count = cur.execute("SELECT COUNT(*) FROM items").fetchone()[0]
                leased = cur.execute(
                    "SELECT COUNT(*) FROM items WHERE state = ?",
                    (int(ItemState.LEASED),),
                ).fetchone()[0]
                approximate = count > self.approx_threshold
                total = count
                if approximate:
                    total = cur.execute(
                        "SELECT COALESCE(MAX(id) - MIN(id) + 1, 0) FROM items"
                    ).fetchone()[0]
        except sqlite3.Error as e:
            logger.error(f"Failed to query pool stats: {e}")
            raise StoreUnavailable(f"Failed to query pool stats: {e}") from e

        return PoolStats(
            total=int(total),
            leased=int(leased),
            available=max(0, int(total) - int(leased)),
            approximate=approximate,
        )
