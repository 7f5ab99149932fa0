"""LeasePoolEngine - single entry point for callers of the item pool

HTTP handlers, the CLI and tests talk to the pool only through this
facade. It wires the lease manager, bulk mutator, stats cache and
paginator to one connection factory and one clock.

Usage:
    engine = LeasePoolEngine.open("/tmp/pool.sqlite")
    engine.ingest(["a@example.com", "b@example.com"])
    item = engine.acquire_one()
    engine.close()
"""

import logging
import random
from pathlib import Path
from typing import IO, Iterable, Optional, Union

from leasepool.core.config import LeasePoolConfig, get_config
from leasepool.core.pool import transfer
from leasepool.core.pool.bulk import DEFAULT_BATCH_SIZE, BulkMutator
from leasepool.core.pool.lease import DEFAULT_LEASE_TTL_SECONDS, LeaseManager
from leasepool.core.pool.models import Item, ItemPage, PoolStats
from leasepool.core.pool.paginator import Paginator
from leasepool.core.pool.stats import DEFAULT_APPROX_THRESHOLD, DEFAULT_STATS_TTL_SECONDS, StatsCache
from leasepool.core.time import Clock, SystemClock
from leasepool.store import ConnectionFactory, init_db, init_factory, shutdown_factory
from leasepool.store.connection_factory import DEFAULT_BUSY_TIMEOUT_MS

logger = logging.getLogger(__name__)


class LeasePoolEngine:
    def __init__(
        self,
        connections: ConnectionFactory,
        lease_ttl_seconds: int = DEFAULT_LEASE_TTL_SECONDS,
        stats_ttl_seconds: int = DEFAULT_STATS_TTL_SECONDS,
        approx_threshold: int = DEFAULT_APPROX_THRESHOLD,
        batch_size: int = DEFAULT_BATCH_SIZE,
        clock: Optional[Clock] = None,
        rng: Optional[random.Random] = None,
    ):
        self.connections = connections
        self.clock = clock or SystemClock()
        self.leases = LeaseManager(connections, lease_ttl_seconds, clock=self.clock, rng=rng)
        self.bulk = BulkMutator(connections, batch_size, clock=self.clock)
        self.stats = StatsCache(connections, stats_ttl_seconds, approx_threshold, clock=self.clock)
        self.paginator = Paginator(connections, self.stats)

    @classmethod
    def open(
        cls,
        db_path: Union[str, Path],
        busy_timeout_ms: int = DEFAULT_BUSY_TIMEOUT_MS,
        **kwargs,
    ) -> "LeasePoolEngine":
        """Create/migrate the database at db_path and build an engine on it"""
        init_db(db_path)
        return cls(ConnectionFactory(db_path, busy_timeout_ms), **kwargs)

    @classmethod
    def from_config(cls, config: LeasePoolConfig, connections: Optional[ConnectionFactory] = None) -> "LeasePoolEngine":
        init_db(config.db_path)
        if connections is None:
            connections = ConnectionFactory(config.db_path, config.busy_timeout_ms)
        return cls(
            connections,
            lease_ttl_seconds=config.lease_ttl_seconds,
            stats_ttl_seconds=config.stats_ttl_seconds,
            approx_threshold=config.approx_threshold,
            batch_size=config.batch_size,
        )

    # ---------- leases ----------

    def acquire_one(self) -> Optional[Item]:
        return self.leases.acquire_one()

    def release(self, item_id: int) -> bool:
        return self.leases.release(item_id)

    # ---------- bulk ----------

    def ingest(self, values: Iterable[object]) -> int:
        return self.bulk.ingest(values)

    def add_one(self, value: object) -> bool:
        return self.bulk.add_one(value)

    def evict_by_ids(self, ids: Iterable[int]) -> int:
        return self.bulk.evict_by_ids(ids)

    def force_release_all(self) -> int:
        return self.bulk.force_release_all()

    def get(self, item_id: int) -> Optional[Item]:
        return self.bulk.get(item_id)

    # ---------- reads ----------

    def get_stats(self) -> PoolStats:
        return self.stats.get_stats()

    def list(self, page: int = 1, page_size: int = 100, search: Optional[str] = None) -> ItemPage:
        return self.paginator.list(page, page_size, search)

    # ---------- files ----------

    def load_file(self, path: Union[str, Path]) -> int:
        return transfer.load_file(self.bulk, path)

    def save_file(self, values: Iterable[object], path: Union[str, Path]) -> int:
        suffix = str(self.clock.now_ms() // 1000)
        return transfer.save_file(self.bulk, values, path, backup_suffix=suffix)

    def export(self, stream: IO[str]) -> int:
        return transfer.export_values(self.bulk, stream)

    def export_file(self, path: Union[str, Path]) -> int:
        return transfer.export_file(self.bulk, path)

    def close(self) -> None:
        self.connections.close_all()


# Global engine instance (one per process, shares the stats cache)
_engine: Optional[LeasePoolEngine] = None


def get_engine(config: Optional[LeasePoolConfig] = None) -> LeasePoolEngine:
    """Get the process-wide engine, built on first call from config (default: get_config())"""
    global _engine

    if _engine is None:
        config = config or get_config()
        factory = init_factory(config.db_path, config.busy_timeout_ms)
        _engine = LeasePoolEngine.from_config(config, connections=factory)
        logger.info(f"Lease pool engine ready: {config.db_path}")

    return _engine


def shutdown_engine() -> None:
    global _engine
    _engine = None
    shutdown_factory()
