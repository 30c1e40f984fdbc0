"""Signal versioning store — append-only, versioned observations about a user."""

from .batch import BatchIngestionCoordinator
from .engine import SignalVersioningEngine
from .errors import (
    PartialBatchError,
    SignalError,
    StoreError,
    StoreReadError,
    StoreWriteError,
    ValidationError,
    VersionConflictError,
)
from .memory_store import InMemorySignalStore
from .models import Observation, Provenance, Signal, SignalKey, SignalQuery
from .query import SignalQueryFacade
from .service import SignalService
from .sqlite_store import SQLiteSignalStore
from .store import SignalStore

__all__ = [
    "BatchIngestionCoordinator",
    "InMemorySignalStore",
    "Observation",
    "PartialBatchError",
    "Provenance",
    "SQLiteSignalStore",
    "Signal",
    "SignalError",
    "SignalKey",
    "SignalQuery",
    "SignalQueryFacade",
    "SignalService",
    "SignalStore",
    "SignalVersioningEngine",
    "StoreError",
    "StoreReadError",
    "StoreWriteError",
    "ValidationError",
    "VersionConflictError",
]
