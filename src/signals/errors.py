"""Error taxonomy for the signal store."""


class SignalError(Exception):
    """Base signal store error."""


class ValidationError(SignalError):
    """Malformed input. Raised before any store access."""


class StoreError(SignalError):
    """The underlying store failed."""


class StoreReadError(StoreError):
    """Reading max version or querying signals failed."""


class StoreWriteError(StoreError):
    """The store rejected or failed a write."""


class VersionConflictError(StoreWriteError):
    """A record with the same (user, entry, key, version) already exists."""

    def __init__(self, user_id: str, entry_id: str, key: str, version: int):
        self.user_id = user_id
        self.entry_id = entry_id
        self.key = key
        self.version = version
        super().__init__(
            f"Version {version} already exists for {user_id}/{entry_id}/{key}"
        )


class PartialBatchError(StoreWriteError):
    """A batch failed after some of its signals were committed.

    Attributes:
        committed_ids: Ids of signals persisted before the failure, in input order.
        failed_index: Position of the observation whose write failed.
        total: Number of observations in the batch.
    """

    def __init__(self, committed_ids: list[str], failed_index: int, total: int):
        self.committed_ids = committed_ids
        self.failed_index = failed_index
        self.total = total
        super().__init__(
            f"Batch failed at item {failed_index} of {total}; "
            f"{len(committed_ids)} signal(s) were recorded"
        )
