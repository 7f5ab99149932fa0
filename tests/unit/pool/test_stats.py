import pytest

from leasepool.core.pool import LeasePoolEngine, PoolStats, StoreUnavailable
from leasepool.core.pool.stats import StatsCache


def _values(n: int) -> list:
    return [f"user{i}@example.com" for i in range(n)]


def test_stats_exact_counts(engine: LeasePoolEngine) -> None:
    engine.ingest(_values(5))
    engine.acquire_one()
    engine.acquire_one()

    assert engine.get_stats() == PoolStats(total=5, leased=2, available=3, approximate=False)


def test_empty_pool_stats(engine: LeasePoolEngine) -> None:
    assert engine.get_stats() == PoolStats(total=0, leased=0, available=0)


def test_stats_cached_within_ttl(engine: LeasePoolEngine, clock) -> None:
    engine.ingest(_values(2))
    assert engine.get_stats().total == 2

    engine.ingest(["late@example.com"])
    clock.advance(29.999)
    assert engine.get_stats().total == 2

    clock.advance(0.001)
    assert engine.get_stats().total == 3


def test_invalidate_forces_refresh(engine: LeasePoolEngine) -> None:
    engine.ingest(_values(2))
    assert engine.get_stats().total == 2

    engine.ingest(["late@example.com"])
    engine.stats.invalidate()
    assert engine.get_stats().total == 3


def test_approximate_path_above_threshold(engine: LeasePoolEngine, clock) -> None:
    engine.ingest(_values(10))
    engine.evict_by_ids([engine.list(1, 10).items[3].id])
    engine.acquire_one()

    cache = StatsCache(engine.connections, ttl_seconds=30, approx_threshold=5, clock=clock)
    stats = cache.get_stats()

    assert stats.approximate is True
    # id span still counts the deleted id
    assert stats.total == 10
    assert stats.leased == 1
    assert stats.available == 9


def test_exact_path_at_threshold(engine: LeasePoolEngine, clock) -> None:
    engine.ingest(_values(5))

    cache = StatsCache(engine.connections, approx_threshold=5, clock=clock)
    stats = cache.get_stats()

    assert stats.approximate is False
    assert stats.total == 5


def test_stats_to_dict(engine: LeasePoolEngine) -> None:
    engine.ingest(_values(1))
    assert engine.get_stats().to_dict() == {
        "total": 1,
        "leased": 0,
        "available": 1,
        "approximate": False,
    }


def test_sparse_ids_do_not_trigger_approximate_path(engine: LeasePoolEngine, clock) -> None:
    engine.ingest(_values(12))
    ids = sorted(item.id for item in engine.list(1, 20).items)
    engine.evict_by_ids(ids[1:-1])

    cache = StatsCache(engine.connections, approx_threshold=10, clock=clock)
    stats = cache.get_stats()

    assert stats == PoolStats(total=2, leased=0, available=2, approximate=False)


def test_stats_store_failure(engine: LeasePoolEngine) -> None:
    engine.connections.get_connection().execute("DROP TABLE items")

    with pytest.raises(StoreUnavailable):
        engine.get_stats()
