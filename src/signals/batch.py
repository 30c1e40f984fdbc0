"""Batch ingestion of many observations under one provenance context."""

from collections.abc import Iterable, Mapping

import structlog

from .engine import SignalVersioningEngine, optional_identifier, optional_window
from .errors import PartialBatchError, StoreError, ValidationError
from .models import Observation

logger = structlog.get_logger()


class BatchIngestionCoordinator:
    """Applies one provenance context across a sequence of observations."""

    def __init__(self, engine: SignalVersioningEngine):
        self.engine = engine

    def add_signals_batch(
        self,
        user_id: str,
        observations: Iterable[Observation | dict],
        model: str,
        trigger_capture_id: str | None = None,
        source_window_days: int | None = None,
        llm_run_id: str | None = None,
        atomic: bool = False,
    ) -> list[str]:
        """Write every observation through the engine, in input order.

        Every observation is validated before the first write. With
        atomic=False a failure leaves earlier signals committed and raises
        PartialBatchError listing them; with atomic=True the batch shares one
        store transaction and a failure rolls all of it back.

        Returns:
            Signal ids, same length and order as observations.

        Raises:
            ValidationError: Empty batch or malformed observation.
            PartialBatchError: Some signals were recorded before a store failure.
            StoreError: Nothing was recorded.
        """
        items = []
        for i, obs in enumerate(observations):
            if isinstance(obs, Observation):
                items.append(obs)
            elif isinstance(obs, Mapping):
                items.append(Observation.from_dict(obs))
            else:
                raise ValidationError(f"observation {i}: expected Observation or mapping")
        if not items:
            raise ValidationError("observations must not be empty")
        for i, obs in enumerate(items):
            try:
                self.engine.validate(user_id, obs.entry_id, obs.key, obs.value, obs.confidence, model)
            except ValidationError as e:
                raise ValidationError(f"observation {i}: {e}") from e
        optional_identifier("trigger_capture_id", trigger_capture_id)
        optional_identifier("llm_run_id", llm_run_id)
        optional_window(source_window_days)

        committed: list[str] = []
        try:
            if atomic:
                with self.engine.store.transaction():
                    staged = [
                        self._write(user_id, obs, model, trigger_capture_id, source_window_days, llm_run_id)
                        for obs in items
                    ]
                committed = staged
            else:
                for obs in items:
                    committed.append(
                        self._write(user_id, obs, model, trigger_capture_id, source_window_days, llm_run_id)
                    )
        except StoreError as e:
            if not committed:
                logger.error(
                    "signals.batch_failed",
                    total=len(items),
                    atomic=atomic,
                    llm_run_id=llm_run_id,
                    error=str(e),
                )
                raise
            logger.error(
                "signals.batch_partial",
                committed=len(committed),
                failed_index=len(committed),
                total=len(items),
                llm_run_id=llm_run_id,
                error=str(e),
            )
            raise PartialBatchError(list(committed), len(committed), len(items)) from e

        logger.info(
            "signals.batch_written",
            count=len(committed),
            atomic=atomic,
            trigger_capture_id=trigger_capture_id,
            llm_run_id=llm_run_id,
        )
        return committed

    def _write(self, user_id, obs, model, trigger_capture_id, source_window_days, llm_run_id) -> str:
        return self.engine.add_signal(
            user_id,
            obs.entry_id,
            obs.key,
            obs.value,
            obs.confidence,
            model,
            trigger_capture_id,
            source_window_days,
            llm_run_id,
        )
