"""Shared test fixtures for the signal store."""

import itertools
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from signals import InMemorySignalStore, SignalService, SQLiteSignalStore  # noqa: E402

T0 = datetime(2025, 3, 1, 9, 0, tzinfo=timezone.utc)


class FakeClock:
    """Deterministic clock: each call returns the current time, then steps forward."""

    def __init__(self, start: datetime = T0, step: timedelta = timedelta(minutes=1)):
        self.now = start
        self.step = step

    def __call__(self) -> datetime:
        current = self.now
        self.now = self.now + self.step
        return current


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def id_factory():
    counter = itertools.count(1)
    return lambda: f"sig-{next(counter):04d}"


@pytest.fixture
def memory_store():
    return InMemorySignalStore()


@pytest.fixture
def sqlite_store(tmp_path):
    return SQLiteSignalStore(tmp_path / "signals.db")


@pytest.fixture(params=["memory", "sqlite"])
def store(request, tmp_path):
    """Each contract test runs against both stores."""
    if request.param == "memory":
        return InMemorySignalStore()
    return SQLiteSignalStore(tmp_path / "signals.db")


@pytest.fixture
def service(store, clock, id_factory):
    return SignalService(store, id_factory=id_factory, clock=clock)
