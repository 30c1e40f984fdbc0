"""LLM-powered signal extraction from journal captures."""

import json
import math
from dataclasses import dataclass
from datetime import datetime

import structlog

from cli.retry import llm_retry
from shared_types import SignalKey

from .models import Observation

logger = structlog.get_logger()

_EXTRACTION_SYSTEM = """You extract structured signals from a user's journal note.

You never infer intent. You assign probabilities.

Return ONLY a JSON object, no preamble, no markdown fences. Keys:
{keys}

Each key maps to {{"value": <0-1>, "confidence": <0-1>}} where value is the
strength of the signal in the note and confidence is how sure you are of it.
Omit keys the note says nothing about.

Example output:
{{"actionability": {{"value": 0.8, "confidence": 0.9}}, "tone_stress": {{"value": 0.2, "confidence": 0.6}}}}"""

VALID_KEYS = {k.value for k in SignalKey}


@dataclass(frozen=True)
class Capture:
    """A journal capture the extractor reads. Its id becomes the signal entry_id."""

    id: str
    text: str
    created_at: datetime | None = None


def _unit_interval(raw) -> float | None:
    if isinstance(raw, bool) or not isinstance(raw, (int, float)):
        return None
    value = float(raw)
    if not math.isfinite(value) or not 0.0 <= value <= 1.0:
        return None
    return value


class SignalExtractor:
    """Turns capture text into observations over the SignalKey vocabulary."""

    def __init__(
        self,
        provider=None,
        min_confidence: float = 0.0,
        max_chars: int = 4000,
        retry=None,
    ):
        self._provider = provider
        self.min_confidence = min_confidence
        self.max_chars = max_chars
        self._generate = (retry or llm_retry())(self._call_provider)

    def _get_provider(self):
        if self._provider is None:
            from llm.factory import create_cheap_provider

            self._provider = create_cheap_provider()
        return self._provider

    def _call_provider(self, system: str, prompt: str) -> str:
        return self._get_provider().generate(
            messages=[{"role": "user", "content": prompt}],
            system=system,
            max_tokens=600,
        )

    def extract(self, capture: Capture) -> list[Observation]:
        """Extract observations from one capture. LLM failures yield []."""
        text = (capture.text or "").strip()
        if len(text) < 3:
            return []

        system = _EXTRACTION_SYSTEM.format(keys="\n".join(f"- {k}" for k in sorted(VALID_KEYS)))
        prompt = f"Note:\n{text[: self.max_chars]}"
        try:
            response = self._generate(system, prompt)
        except Exception as e:
            logger.warning("signal_extraction_failed", capture_id=capture.id, error=str(e))
            return []
        return self._parse_response(response, capture.id)

    def extract_many(self, captures: list[Capture]) -> list[Observation]:
        observations = []
        for capture in captures:
            observations.extend(self.extract(capture))
        return observations

    def _parse_response(self, response: str, entry_id: str) -> list[Observation]:
        """Parse the LLM JSON object into observations, dropping invalid items."""
        text = (response or "").strip()
        if text.startswith("```"):
            text = text.split("\n", 1)[-1]
        if text.endswith("```"):
            text = text.rsplit("```", 1)[0]
        text = text.strip()

        try:
            payload = json.loads(text)
        except json.JSONDecodeError:
            logger.warning("signal_parse_failed", entry_id=entry_id, response=text[:200])
            return []

        if not isinstance(payload, dict):
            return []

        observations = []
        for key in sorted(payload):
            if key not in VALID_KEYS:
                continue
            item = payload[key]
            if not isinstance(item, dict):
                continue
            value = _unit_interval(item.get("value"))
            confidence = _unit_interval(item.get("confidence"))
            if value is None or confidence is None:
                continue
            if confidence < self.min_confidence:
                continue
            observations.append(
                Observation(entry_id=entry_id, key=key, value=value, confidence=confidence)
            )
        return observations
