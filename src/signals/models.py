"""Data models for the signal versioning store."""

from dataclasses import dataclass
from datetime import datetime, timezone

from shared_types import SignalKey


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(dt: datetime) -> datetime:
    """Treat naive datetimes as UTC; convert aware ones."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


@dataclass(frozen=True)
class Signal:
    """One immutable, versioned observation about a user.

    Versions are scoped to the (user_id, entry_id, key) partition and start
    at 1. Optional provenance fields are None when not supplied.
    """

    id: str
    user_id: str
    entry_id: str
    key: str
    value: float
    confidence: float
    model: str
    version: int
    generated_at: datetime
    expires_at: datetime | None = None
    trigger_capture_id: str | None = None
    source_window_days: int | None = None
    llm_run_id: str | None = None

    @property
    def partition(self) -> tuple[str, str, str]:
        return (self.user_id, self.entry_id, self.key)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "entry_id": self.entry_id,
            "key": self.key,
            "value": self.value,
            "confidence": self.confidence,
            "model": self.model,
            "version": self.version,
            "generated_at": self.generated_at.isoformat(),
            "expires_at": self.expires_at.isoformat() if self.expires_at else None,
            "trigger_capture_id": self.trigger_capture_id,
            "source_window_days": self.source_window_days,
            "llm_run_id": self.llm_run_id,
        }


@dataclass(frozen=True)
class Observation:
    """A single (entry, key, value, confidence) tuple in a batch."""

    entry_id: str
    key: str
    value: float
    confidence: float

    @classmethod
    def from_dict(cls, data: dict) -> "Observation":
        return cls(
            entry_id=data.get("entry_id", ""),
            key=data.get("key", ""),
            value=data.get("value"),
            confidence=data.get("confidence"),
        )


@dataclass(frozen=True)
class Provenance:
    """Context shared by every signal written in one batch."""

    model: str
    trigger_capture_id: str | None = None
    source_window_days: int | None = None
    llm_run_id: str | None = None


@dataclass(frozen=True)
class SignalQuery:
    """Filter options for reading signals.

    Attributes:
        entry_id: Only signals from this entry.
        key: Only signals with this key.
        trigger_capture_id: Only signals triggered by this capture.
        llm_run_id: Only signals from this LLM run.
        since: generated_at >= since.
        until: generated_at < until.
        min_version: version >= min_version.
        latest_only: Keep only the highest version per partition among matches.
        not_expired_at: Drop signals whose expires_at is at or before this instant.
        newest_first: Order by generated_at descending instead of insertion order.
        limit: Max rows returned.
    """

    entry_id: str | None = None
    key: str | None = None
    trigger_capture_id: str | None = None
    llm_run_id: str | None = None
    since: datetime | None = None
    until: datetime | None = None
    min_version: int | None = None
    latest_only: bool = False
    not_expired_at: datetime | None = None
    newest_first: bool = False
    limit: int | None = None


__all__ = [
    "Observation",
    "Provenance",
    "Signal",
    "SignalKey",
    "SignalQuery",
    "as_utc",
    "utc_now",
]
