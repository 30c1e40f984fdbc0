"""List-backed signal store for tests and embedded use."""

import threading
from contextlib import contextmanager

from .errors import VersionConflictError
from .models import Signal, SignalQuery, as_utc
from .store import SignalStore


def _matches(signal: Signal, query: SignalQuery) -> bool:
    if query.entry_id is not None and signal.entry_id != query.entry_id:
        return False
    if query.key is not None and signal.key != query.key:
        return False
    if query.trigger_capture_id is not None and signal.trigger_capture_id != query.trigger_capture_id:
        return False
    if query.llm_run_id is not None and signal.llm_run_id != query.llm_run_id:
        return False
    if query.since is not None and signal.generated_at < as_utc(query.since):
        return False
    if query.until is not None and signal.generated_at >= as_utc(query.until):
        return False
    if query.min_version is not None and signal.version < query.min_version:
        return False
    if (
        query.not_expired_at is not None
        and signal.expires_at is not None
        and signal.expires_at <= as_utc(query.not_expired_at)
    ):
        return False
    return True


def select_signals(signals: list[Signal], query: SignalQuery) -> list[Signal]:
    """Apply query filters, latest-only reduction, ordering and limit."""
    matched = [s for s in signals if _matches(s, query)]

    if query.latest_only:
        latest: dict[tuple[str, str, str], int] = {}
        for s in matched:
            latest[s.partition] = max(latest.get(s.partition, 0), s.version)
        matched = [s for s in matched if s.version == latest[s.partition]]

    if query.newest_first:
        # sorted() is stable, so ties keep reverse insertion order
        matched = sorted(reversed(matched), key=lambda s: s.generated_at, reverse=True)

    if query.limit is not None:
        matched = matched[: query.limit]
    return matched


class InMemorySignalStore(SignalStore):
    """Signal store held in a Python list.

    One re-entrant lock serializes all access, so version allocation inside
    transaction() is safe across threads of a single process.
    """

    def __init__(self):
        self._signals: list[Signal] = []
        self._versions: set[tuple[str, str, str, int]] = set()
        self._lock = threading.RLock()

    def get_max_version(self, user_id: str, entry_id: str, key: str) -> int:
        with self._lock:
            versions = [
                s.version for s in self._signals if s.partition == (user_id, entry_id, key)
            ]
        return max(versions, default=0)

    def create(self, signal: Signal) -> None:
        slot = (*signal.partition, signal.version)
        with self._lock:
            if slot in self._versions:
                raise VersionConflictError(*slot)
            self._signals.append(signal)
            self._versions.add(slot)

    def get(self, user_id: str, query: SignalQuery | None = None) -> list[Signal]:
        with self._lock:
            owned = [s for s in self._signals if s.user_id == user_id]
        return select_signals(owned, query or SignalQuery())

    @contextmanager
    def transaction(self):
        with self._lock:
            mark = len(self._signals)
            try:
                yield
            except BaseException:
                for s in self._signals[mark:]:
                    self._versions.discard((*s.partition, s.version))
                del self._signals[mark:]
                raise

    def __len__(self) -> int:
        with self._lock:
            return len(self._signals)
