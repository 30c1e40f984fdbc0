"""Tests for SignalExtractor response parsing and provider failures."""

import json
from unittest.mock import MagicMock

import pytest

from cli.retry import llm_retry
from llm.base import LLMAuthError, LLMRateLimitError
from signals.extractor import Capture, SignalExtractor

NO_WAIT = llm_retry(max_attempts=2, min_wait=0, max_wait=0)


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
def extractor(provider):
    return SignalExtractor(provider=provider, retry=NO_WAIT)


CAPTURE = Capture(id="cap-1", text="Need to send the tax forms by Friday, feeling stretched.")


class TestExtract:
    def test_observations_use_capture_id(self, extractor):
        obs = extractor.extract(CAPTURE)
        assert [(o.entry_id, o.key, o.value, o.confidence) for o in obs] == [
            ("cap-1", "actionability", 0.9, 0.6),
            ("cap-1", "tone_stress", 0.7, 0.8),
        ]

    def test_prompt_includes_note_and_vocabulary(self, extractor, provider):
        extractor.extract(CAPTURE)
        kwargs = provider.generate.call_args.kwargs
        assert "tax forms" in kwargs["messages"][0]["content"]
        assert "habit_likelihood" in kwargs["system"]

    def test_long_text_is_truncated(self, provider):
        extractor = SignalExtractor(provider=provider, max_chars=10, retry=NO_WAIT)
        extractor.extract(Capture(id="c", text="x" * 50))
        content = provider.generate.call_args.kwargs["messages"][0]["content"]
        assert content.count("x") == 10

    @pytest.mark.parametrize("text", ["", "  ", "ok"])
    def test_short_text_skips_llm(self, extractor, provider, text):
        assert extractor.extract(Capture(id="c", text=text)) == []
        provider.generate.assert_not_called()

    def test_strips_markdown_fences(self, extractor, provider):
        provider.generate.return_value = '```json\n{"scope_shortness": {"value": 0.4, "confidence": 0.5}}\n```'
        [obs] = extractor.extract(CAPTURE)
        assert obs.key == "scope_shortness"

    def test_min_confidence_filter(self, provider):
        extractor = SignalExtractor(provider=provider, min_confidence=0.7, retry=NO_WAIT)
        assert [o.key for o in extractor.extract(CAPTURE)] == ["tone_stress"]

    def test_extract_many_concatenates(self, extractor):
        obs = extractor.extract_many([CAPTURE, Capture(id="cap-2", text="Another longer note")])
        assert [o.entry_id for o in obs] == ["cap-1", "cap-1", "cap-2", "cap-2"]


class TestParsing:
    @pytest.mark.parametrize(
        "response",
        [
            "not json",
            "[]",
            '"just a string"',
            "",
        ],
    )
    def test_unusable_response_yields_nothing(self, extractor, provider, response):
        provider.generate.return_value = response
        assert extractor.extract(CAPTURE) == []

    def test_drops_invalid_items(self, extractor, provider):
        provider.generate.return_value = json.dumps(
            {
                "unknown_key": {"value": 0.5, "confidence": 0.5},
                "actionability": {"value": 1.5, "confidence": 0.5},
                "habit_likelihood": {"value": 0.5},
                "external_coupling": "high",
                "consequence_strength": {"value": True, "confidence": 0.5},
                "temporal_proximity": {"value": 0.3, "confidence": 0.4},
            }
        )
        [obs] = extractor.extract(CAPTURE)
        assert obs.key == "temporal_proximity"


class TestProviderFailures:
    def test_transient_error_is_retried(self, extractor, provider):
        good = provider.generate.return_value
        provider.generate.side_effect = [LLMRateLimitError("slow down"), good]
        assert len(extractor.extract(CAPTURE)) == 2
        assert provider.generate.call_count == 2

    def test_exhausted_retries_yield_nothing(self, extractor, provider):
        provider.generate.side_effect = LLMRateLimitError("slow down")
        assert extractor.extract(CAPTURE) == []
        assert provider.generate.call_count == 2

    def test_auth_error_not_retried(self, extractor, provider):
        provider.generate.side_effect = LLMAuthError("bad key")
        assert extractor.extract(CAPTURE) == []
        assert provider.generate.call_count == 1
