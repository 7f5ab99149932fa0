import random
from pathlib import Path

import pytest

from leasepool.core.config import get_config
from leasepool.core.pool import LeasePoolEngine, shutdown_engine


START_MS = 1_700_000_000_000


class ManualClock:
    """Clock that only moves when a test says so"""

    def __init__(self, start_ms: int = START_MS):
        self.ms = start_ms

    def now_ms(self) -> int:
        return self.ms

    def advance(self, seconds: float) -> None:
        self.ms += int(seconds * 1000)


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture
def db_path(tmp_path: Path) -> Path:
    return tmp_path / "pool.sqlite"


@pytest.fixture
def engine(db_path: Path, clock: ManualClock):
    eng = LeasePoolEngine.open(db_path, clock=clock, rng=random.Random(0))
    yield eng
    eng.close()


@pytest.fixture(autouse=True)
def _isolated_home(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    """Point every default path at tmp_path and drop cached singletons"""
    monkeypatch.setenv("LEASEPOOL_HOME", str(tmp_path / "home"))
    monkeypatch.delenv("LEASEPOOL_DB_PATH", raising=False)
    monkeypatch.delenv("LEASEPOOL_SOURCE_FILE", raising=False)
    get_config(force_reload=True)
    yield
    shutdown_engine()
    get_config(force_reload=True)
