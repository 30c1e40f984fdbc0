"""Signal store contract — the seam between the versioning core and persistence."""

from abc import ABC, abstractmethod
from contextlib import AbstractContextManager

from .models import Signal, SignalQuery


class SignalStore(ABC):
    """Abstract durable store for signals.

    Conforming stores must make get_max_version reflect every write they have
    committed, and must reject a second record for the same
    (user_id, entry_id, key, version) with VersionConflictError.
    """

    @abstractmethod
    def get_max_version(self, user_id: str, entry_id: str, key: str) -> int:
        """Return the highest stored version for the partition, or 0.

        Raises:
            StoreReadError: The read failed.
        """
        ...

    @abstractmethod
    def create(self, signal: Signal) -> None:
        """Append one fully populated signal.

        Raises:
            VersionConflictError: The partition already holds this version.
            StoreWriteError: The write was rejected or failed.
        """
        ...

    @abstractmethod
    def get(self, user_id: str, query: SignalQuery | None = None) -> list[Signal]:
        """Return the user's signals matching query.

        Insertion order unless query.newest_first is set.

        Raises:
            StoreReadError: The query failed.
        """
        ...

    @abstractmethod
    def transaction(self) -> AbstractContextManager[None]:
        """Serialize version allocation and group writes.

        Every write inside the block commits on normal exit and rolls back if
        the block raises. Nested blocks in the same thread join the outer one.
        """
        ...
