from pathlib import Path

import pytest

from leasepool.core.config import LeasePoolConfig, get_config
from leasepool.core.pool import LeasePoolEngine, get_engine, shutdown_engine
from leasepool.store import get_factory


def test_from_config_applies_settings(tmp_path: Path) -> None:
    config = LeasePoolConfig(
        db_path=tmp_path / "pool.sqlite",
        lease_ttl_seconds=60,
        stats_ttl_seconds=5,
        approx_threshold=1000,
        batch_size=7,
    )

    engine = LeasePoolEngine.from_config(config)

    assert engine.leases.lease_ttl_ms == 60_000
    assert engine.stats.ttl_ms == 5_000
    assert engine.stats.approx_threshold == 1000
    assert engine.bulk.batch_size == 7
    assert config.db_path.exists()
    engine.close()


def test_get_engine_is_process_wide(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("LEASEPOOL_DB_PATH", str(tmp_path / "env.sqlite"))
    get_config(force_reload=True)

    engine = get_engine()

    assert get_engine() is engine
    assert get_factory() is engine.connections
    assert engine.connections.db_path == tmp_path / "env.sqlite"

    shutdown_engine()
    assert get_factory() is None
    assert get_engine() is not engine


class TestLeasePoolConfig:
    def test_default_paths_follow_home(self, tmp_path: Path) -> None:
        config = get_config()
        assert config.db_path == tmp_path / "home" / "store" / "pool.sqlite"
        assert config.source_file == tmp_path / "home" / "data" / "items.txt"

    def test_env_overrides(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("LEASEPOOL_LEASE_TTL_SECONDS", "42")
        monkeypatch.setenv("LEASEPOOL_LOG_LEVEL", "warning")
        config = get_config(force_reload=True)
        assert config.lease_ttl_seconds == 42
        assert config.log_level == "WARNING"

    def test_invalid_values_rejected(self) -> None:
        with pytest.raises(ValueError):
            LeasePoolConfig(log_level="chatty")
        with pytest.raises(ValueError):
            LeasePoolConfig(lease_ttl_seconds=0)
