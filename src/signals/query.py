"""Read-only access to accumulated signals."""

from dataclasses import replace
from datetime import datetime, timedelta
from typing import Callable

from .engine import require_identifier, require_window
from .errors import ValidationError
from .models import Signal, SignalQuery, as_utc, utc_now
from .store import SignalStore


class SignalQueryFacade:
    """Filtered reads over a SignalStore. Never writes.

    Results are a best-effort recency view; concurrent writers may land
    between the rows of one result.
    """

    def __init__(self, store: SignalStore, clock: Callable[[], datetime] = utc_now):
        self.store = store
        self.clock = clock

    def get_signals(
        self,
        user_id: str,
        query: SignalQuery | None = None,
        *,
        window_days: int | None = None,
        exclude_expired: bool = False,
    ) -> list[Signal]:
        """Return the user's signals matching query.

        Args:
            user_id: Owner whose signals are read.
            query: Filter options; None returns everything in insertion order.
            window_days: Only signals generated in the last N days.
            exclude_expired: Drop signals whose expires_at has passed.
        """
        require_identifier("user_id", user_id)
        query = query or SignalQuery()
        if query.limit is not None and query.limit < 1:
            raise ValidationError(f"limit must be positive, got {query.limit}")

        if window_days is not None:
            require_window("window_days", window_days)
            cutoff = as_utc(self.clock()) - timedelta(days=window_days)
            if query.since is None or as_utc(query.since) < cutoff:
                query = replace(query, since=cutoff)
        if exclude_expired:
            query = replace(query, not_expired_at=as_utc(self.clock()))

        return self.store.get(user_id, query)

    def get_history(self, user_id: str, entry_id: str, key: str) -> list[Signal]:
        """All versions of one partition, oldest first."""
        require_identifier("entry_id", entry_id)
        require_identifier("key", key)
        signals = self.get_signals(user_id, SignalQuery(entry_id=entry_id, key=key))
        return sorted(signals, key=lambda s: s.version)

    def get_latest(self, user_id: str, entry_id: str, key: str) -> Signal | None:
        history = self.get_history(user_id, entry_id, key)
        return history[-1] if history else None
