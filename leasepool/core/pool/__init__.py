"""Lease pool engine: acquisition, bulk mutation, stats and listing"""

from leasepool.core.pool.engine import LeasePoolEngine, get_engine, shutdown_engine
from leasepool.core.pool.errors import (
    PartialBatchFailure,
    PoolError,
    StoreUnavailable,
    ValidationRejected,
)
from leasepool.core.pool.models import Item, ItemPage, ItemState, PoolStats

__all__ = [
    "LeasePoolEngine",
    "get_engine",
    "shutdown_engine",
    "PoolError",
    "StoreUnavailable",
    "PartialBatchFailure",
    "ValidationRejected",
    "Item",
    "ItemPage",
    "ItemState",
    "PoolStats",
]
