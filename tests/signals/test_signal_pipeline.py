"""Tests for SignalPipeline — extract -> batch persist."""

import json
from unittest.mock import MagicMock

import pytest

from cli.retry import llm_retry
from observability import metrics
from signals.errors import PartialBatchError, StoreWriteError
from signals.extractor import Capture, SignalExtractor
from signals.models import Observation
from signals.pipeline import SignalPipeline


@pytest.fixture(autouse=True)
def clean_metrics():
    metrics.reset()
    yield
    metrics.reset()


@pytest.fixture
def provider():
    p = MagicMock()
    p.generate.return_value = json.dumps(
        {
            "tone_stress": {"value": 0.7, "confidence": 0.8},
            "actionability": {"value": 0.9, "confidence": 0.6},
        }
    )
    return p


@pytest.fixture
def pipeline(service, provider):
    extractor = SignalExtractor(provider=provider, retry=llm_retry(max_attempts=1))
    return SignalPipeline(service, extractor, model_id="extractor-v1", run_id_factory=lambda: "run-1")


CAPTURES = [
    Capture(id="cap-1", text="Finish the grant report before Monday."),
    Capture(id="cap-2", text="Walked for an hour, felt calm afterwards."),
]


class TestRun:
    def test_end_to_end(self, pipeline, store):
        result = pipeline.run("u1", CAPTURES, trigger_capture_id="cap-2", window_days=30)

        assert result.llm_run_id == "run-1"
        assert result.captures_processed == 2
        assert len(result.signal_ids) == 4

        signals = store.get("u1")
        assert [s.id for s in signals] == result.signal_ids
        assert {s.entry_id for s in signals} == {"cap-1", "cap-2"}
        assert {(s.model, s.trigger_capture_id, s.source_window_days, s.llm_run_id) for s in signals} == {
            ("extractor-v1", "cap-2", 30, "run-1")
        }

    def test_rerun_creates_new_versions(self, pipeline, store):
        pipeline.run("u1", CAPTURES)
        pipeline.run("u1", CAPTURES)
        assert max(s.version for s in store.get("u1")) == 2

    def test_no_captures(self, pipeline, provider, store):
        result = pipeline.run("u1", [])
        assert result.llm_run_id is None
        assert result.signal_ids == []
        provider.generate.assert_not_called()
        assert store.get("u1") == []

    def test_nothing_extracted(self, pipeline, provider, store):
        provider.generate.return_value = "{}"
        result = pipeline.run("u1", CAPTURES)
        assert result.observations == []
        assert result.signal_ids == []
        assert store.get("u1") == []

    def test_metrics(self, pipeline):
        pipeline.run("u1", CAPTURES)
        assert metrics.get_counter("signal_pipeline.captures") == 2
        assert metrics.get_counter("signal_pipeline.signals_written") == 4
        assert metrics.summary()["timers"]["signal_pipeline.extract"]["count"] == 1


class TestRunFailures:
    def test_partial_batch_propagates(self, provider):
        service = MagicMock()
        service.add_signals_batch.side_effect = PartialBatchError(["a"], 1, 4)
        extractor = SignalExtractor(provider=provider, retry=llm_retry(max_attempts=1))
        pipeline = SignalPipeline(service, extractor)

        with pytest.raises(PartialBatchError):
            pipeline.run("u1", CAPTURES)
        assert metrics.get_counter("signal_pipeline.partial_batches") == 1
        assert metrics.get_counter("signal_pipeline.signals_written") == 1

    def test_store_failure_propagates(self, provider):
        service = MagicMock()
        service.add_signals_batch.side_effect = StoreWriteError("disk full")
        extractor = SignalExtractor(provider=provider, retry=llm_retry(max_attempts=1))
        pipeline = SignalPipeline(service, extractor)

        with pytest.raises(StoreWriteError):
            pipeline.run("u1", CAPTURES)
        assert metrics.get_counter("signal_pipeline.failed_batches") == 1

    def test_atomic_flag_passed_through(self):
        service = MagicMock()
        service.add_signals_batch.return_value = ["x"]
        extractor = MagicMock()
        extractor.extract_many.return_value = [Observation("cap-1", "tone_stress", 0.5, 0.5)]
        pipeline = SignalPipeline(service, extractor, atomic=True)

        pipeline.run("u1", CAPTURES[:1])
        assert service.add_signals_batch.call_args.kwargs["atomic"] is True
