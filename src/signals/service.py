"""Signal service: the entry point application code calls."""

from collections import Counter
from datetime import datetime
from typing import Callable

from .batch import BatchIngestionCoordinator
from .engine import SignalVersioningEngine, new_signal_id
from .models import Observation, Provenance, Signal, SignalQuery, utc_now
from .query import SignalQueryFacade
from .store import SignalStore


class SignalService:
    """Bundles the versioning engine, batch coordinator and query facade over one store."""

    def __init__(
        self,
        store: SignalStore,
        id_factory: Callable[[], str] = new_signal_id,
        clock: Callable[[], datetime] = utc_now,
        confidence_range: tuple[float, float] | None = None,
    ):
        self.store = store
        self.engine = SignalVersioningEngine(
            store, id_factory=id_factory, clock=clock, confidence_range=confidence_range
        )
        self.batch = BatchIngestionCoordinator(self.engine)
        self.query = SignalQueryFacade(store, clock=clock)

    def add_signal(
        self,
        user_id: str,
        entry_id: str,
        key: str,
        value: float,
        confidence: float,
        model: str,
        trigger_capture_id: str | None = None,
        source_window_days: int | None = None,
        llm_run_id: str | None = None,
    ) -> str:
        return self.engine.add_signal(
            user_id,
            entry_id,
            key,
            value,
            confidence,
            model,
            trigger_capture_id,
            source_window_days,
            llm_run_id,
        )

    def add_signals_batch(
        self,
        user_id: str,
        observations: list[Observation | dict],
        model: str,
        trigger_capture_id: str | None = None,
        source_window_days: int | None = None,
        llm_run_id: str | None = None,
        atomic: bool = False,
    ) -> list[str]:
        return self.batch.add_signals_batch(
            user_id,
            observations,
            model,
            trigger_capture_id,
            source_window_days,
            llm_run_id,
            atomic=atomic,
        )

    def add_with_provenance(
        self, user_id: str, observations: list[Observation | dict], provenance: Provenance, atomic: bool = False
    ) -> list[str]:
        return self.add_signals_batch(
            user_id,
            observations,
            provenance.model,
            provenance.trigger_capture_id,
            provenance.source_window_days,
            provenance.llm_run_id,
            atomic=atomic,
        )

    def get_signals(
        self,
        user_id: str,
        query: SignalQuery | None = None,
        *,
        window_days: int | None = None,
        exclude_expired: bool = False,
    ) -> list[Signal]:
        return self.query.get_signals(
            user_id, query, window_days=window_days, exclude_expired=exclude_expired
        )

    def get_history(self, user_id: str, entry_id: str, key: str) -> list[Signal]:
        return self.query.get_history(user_id, entry_id, key)

    def get_latest(self, user_id: str, entry_id: str, key: str) -> Signal | None:
        return self.query.get_latest(user_id, entry_id, key)

    def get_stats(self, user_id: str) -> dict:
        """Signal counts for a user: total rows, partitions, and rows per key."""
        signals = self.query.get_signals(user_id)
        return {
            "total_signals": len(signals),
            "partitions": len({s.partition for s in signals}),
            "entries": len({s.entry_id for s in signals}),
            "by_key": dict(Counter(s.key for s in signals)),
        }
