"""Allocates per-partition signal versions and appends records."""

import math
import uuid
from datetime import datetime
from numbers import Real
from typing import Callable

import structlog

from .errors import ValidationError
from .models import Signal, as_utc, utc_now
from .store import SignalStore

logger = structlog.get_logger()

# A century; also keeps windows inside timedelta and SQLite INTEGER range
MAX_WINDOW_DAYS = 36500


def new_signal_id() -> str:
    return str(uuid.uuid4())


def require_identifier(name: str, value) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{name} must be a non-empty string")
    return value


def require_finite(name: str, value) -> float:
    if isinstance(value, bool) or not isinstance(value, Real):
        raise ValidationError(f"{name} must be a number, got {type(value).__name__}")
    try:
        value = float(value)
    except OverflowError as e:
        raise ValidationError(f"{name} is too large to represent as a float") from e
    if not math.isfinite(value):
        raise ValidationError(f"{name} must be finite, got {value}")
    return value


def optional_identifier(name: str, value) -> str | None:
    if value is None:
        return None
    return require_identifier(name, value)


def require_window(name: str, value) -> int:
    """Positive whole number of days, at most MAX_WINDOW_DAYS."""
    if isinstance(value, bool) or not isinstance(value, int) or not 1 <= value <= MAX_WINDOW_DAYS:
        raise ValidationError(
            f"{name} must be an integer between 1 and {MAX_WINDOW_DAYS}, got {value!r}"
        )
    return value


def optional_window(value) -> int | None:
    if value is None:
        return None
    return require_window("source_window_days", value)


class SignalVersioningEngine:
    """Writes new signal versions.

    Each call reads the partition's max version and inserts max + 1 inside a
    single store transaction, so concurrent writers to one partition get
    consecutive versions with no duplicates.
    """

    def __init__(
        self,
        store: SignalStore,
        id_factory: Callable[[], str] = new_signal_id,
        clock: Callable[[], datetime] = utc_now,
        confidence_range: tuple[float, float] | None = None,
    ):
        self.store = store
        self.id_factory = id_factory
        self.clock = clock
        self.confidence_range = confidence_range

    def validate(self, user_id, entry_id, key, value, confidence, model) -> tuple[float, float]:
        """Check required fields. Returns (value, confidence) as floats."""
        require_identifier("user_id", user_id)
        require_identifier("entry_id", entry_id)
        require_identifier("key", key)
        require_identifier("model", model)
        value = require_finite("value", value)
        confidence = require_finite("confidence", confidence)
        if self.confidence_range is not None:
            low, high = self.confidence_range
            if not low <= confidence <= high:
                raise ValidationError(
                    f"confidence must be within [{low}, {high}], got {confidence}"
                )
        return value, confidence

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
        """Persist one observation as the next version of its partition.

        Returns:
            Id of the new signal.

        Raises:
            ValidationError: Malformed input; the store is not touched.
            StoreReadError: Reading the current max version failed.
            StoreWriteError: The insert failed; nothing was recorded.
        """
        value, confidence = self.validate(user_id, entry_id, key, value, confidence, model)
        trigger_capture_id = optional_identifier("trigger_capture_id", trigger_capture_id)
        llm_run_id = optional_identifier("llm_run_id", llm_run_id)
        source_window_days = optional_window(source_window_days)

        with self.store.transaction():
            version = self.store.get_max_version(user_id, entry_id, key) + 1
            signal = Signal(
                id=self.id_factory(),
                user_id=user_id,
                entry_id=entry_id,
                key=key,
                value=value,
                confidence=confidence,
                model=model,
                version=version,
                generated_at=as_utc(self.clock()),
                expires_at=None,
                trigger_capture_id=trigger_capture_id,
                source_window_days=source_window_days,
                llm_run_id=llm_run_id,
            )
            self.store.create(signal)

        logger.debug(
            "signals.created",
            signal_id=signal.id,
            entry_id=entry_id,
            key=key,
            version=version,
        )
        return signal.id
