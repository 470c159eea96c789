"""Shared fixtures for the wins test suite."""

from datetime import datetime, timedelta, timezone

import pytest

from wins.logging import LogConfig, reset_loggers, set_config
from wins.persistence.migrations import MigrationRegistry
from wins.persistence.repository import WinRepository
from wins.persistence.store import WinStore


@pytest.fixture(autouse=True)
def isolated_logs(tmp_path_factory):
    """Keep JSONL logs out of the home directory."""
    log_dir = tmp_path_factory.mktemp("logs")
    set_config(LogConfig(log_dir=log_dir))
    reset_loggers()
    yield log_dir
    reset_loggers()


class FakeClock:
    """Deterministic clock: returns queued times, then ticks by one second."""

    def __init__(self, *times: datetime):
        self.times = list(times)
        self.current = datetime(2024, 5, 1, 9, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        if self.times:
            self.current = self.times.pop(0)
        else:
            self.current = self.current + timedelta(seconds=1)
        return self.current


@pytest.fixture
def db_path(tmp_path):
    return tmp_path / "wins.db"


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def make_clock():
    """Build a FakeClock with queued times."""
    return FakeClock


@pytest.fixture
def repo(db_path, clock):
    """Repository with the shipped schema applied."""
    repository = WinRepository(db_path, clock=clock)
    MigrationRegistry().apply(repository)
    yield repository
    repository.close()


@pytest.fixture
def store(db_path, clock):
    """Unmigrated async store; tests call start()/apply_pending themselves."""
    win_store = WinStore(db_path, clock=clock)
    yield win_store
    win_store.repository.close()
