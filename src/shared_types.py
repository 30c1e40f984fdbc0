"""Shared enums and types for the signal store."""

from enum import StrEnum


class SignalKey(StrEnum):
    """Signal vocabulary produced by LLM extraction. Values are in [0, 1]."""

    ACTIONABILITY = "actionability"
    TEMPORAL_PROXIMITY = "temporal_proximity"
    CONSEQUENCE_STRENGTH = "consequence_strength"
    EXTERNAL_COUPLING = "external_coupling"
    SCOPE_SHORTNESS = "scope_shortness"
    HABIT_LIKELIHOOD = "habit_likelihood"
    TONE_STRESS = "tone_stress"
