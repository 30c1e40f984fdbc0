"""Signal generation pipeline — orchestrates extract -> batch persist."""

import uuid
from dataclasses import dataclass, field
from typing import Callable

import structlog

from cli.logging_config import run_context
from observability import metrics

from .errors import PartialBatchError, StoreError
from .extractor import Capture, SignalExtractor
from .models import Observation
from .service import SignalService

logger = structlog.get_logger()


def new_run_id() -> str:
    return str(uuid.uuid4())


@dataclass
class PipelineResult:
    llm_run_id: str | None
    captures_processed: int = 0
    observations: list[Observation] = field(default_factory=list)
    signal_ids: list[str] = field(default_factory=list)


class SignalPipeline:
    """Extracts signals from a window of captures and stores them as one batch.

    Every signal from one run shares the model id, trigger capture, source
    window and a freshly generated LLM run id.
    """

    def __init__(
        self,
        service: SignalService,
        extractor: SignalExtractor | None = None,
        model_id: str = "signal-extractor",
        run_id_factory: Callable[[], str] = new_run_id,
        atomic: bool = False,
    ):
        self.service = service
        self.extractor = extractor or SignalExtractor()
        self.model_id = model_id
        self.run_id_factory = run_id_factory
        self.atomic = atomic

    def run(
        self,
        user_id: str,
        captures: list[Capture],
        trigger_capture_id: str | None = None,
        window_days: int | None = None,
    ) -> PipelineResult:
        """Extract and persist signals for captures.

        Raises:
            ValidationError: Malformed ids or window.
            PartialBatchError: Some signals were stored before a store failure.
            StoreError: Nothing was stored.
        """
        if not captures:
            logger.info(
                "signal_pipeline.no_captures", user_id=user_id, window_days=window_days
            )
            return PipelineResult(llm_run_id=None)

        llm_run_id = self.run_id_factory()
        result = PipelineResult(llm_run_id=llm_run_id, captures_processed=len(captures))
        with run_context(user_id=user_id, llm_run_id=llm_run_id):
            self._extract_and_store(user_id, captures, result, trigger_capture_id, window_days)
        return result

    def _extract_and_store(self, user_id, captures, result, trigger_capture_id, window_days):
        with metrics.timer("signal_pipeline.extract"):
            result.observations = self.extractor.extract_many(captures)
        metrics.counter("signal_pipeline.captures", len(captures))

        if not result.observations:
            logger.info("signal_pipeline.nothing_extracted", captures=len(captures))
            return

        try:
            with metrics.timer("signal_pipeline.persist"):
                result.signal_ids = self.service.add_signals_batch(
                    user_id,
                    result.observations,
                    self.model_id,
                    trigger_capture_id,
                    window_days,
                    result.llm_run_id,
                    atomic=self.atomic,
                )
        except PartialBatchError as e:
            metrics.counter("signal_pipeline.partial_batches")
            metrics.counter("signal_pipeline.signals_written", len(e.committed_ids))
            logger.error("signal_pipeline.partial", committed=len(e.committed_ids), total=e.total)
            raise
        except StoreError as e:
            metrics.counter("signal_pipeline.failed_batches")
            logger.error("signal_pipeline.failed", error=str(e))
            raise

        metrics.counter("signal_pipeline.signals_written", len(result.signal_ids))
        logger.info(
            "signal_pipeline.complete",
            captures=len(captures),
            signals=len(result.signal_ids),
        )
