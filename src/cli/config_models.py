"""Pydantic configuration models for the signal store."""

import os
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from signals.engine import MAX_WINDOW_DAYS

VALID_LLM_PROVIDERS = {"auto", "claude", "openai"}
VALID_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


class LLMConfig(BaseModel):
    """LLM provider configuration for signal extraction."""

    provider: str = "auto"
    model: Optional[str] = None  # None = provider's cheap default
    api_key: Optional[str] = None

    @field_validator("provider")
    @classmethod
    def validate_provider(cls, v: str) -> str:
        if v not in VALID_LLM_PROVIDERS:
            raise ValueError(f"Invalid LLM provider: {v}. Must be one of {VALID_LLM_PROVIDERS}")
        return v


class PathsConfig(BaseModel):
    """File paths configuration."""

    db_path: Path = Path("~/signals/signals.db")

    @model_validator(mode="after")
    def expand_paths(self):
        """Expand ~ in all paths."""
        self.db_path = self.db_path.expanduser()
        return self


class StoreConfig(BaseModel):
    """SQLite store tuning."""

    busy_timeout: float = 5.0

    @field_validator("busy_timeout")
    @classmethod
    def validate_timeout(cls, v: float) -> float:
        if v <= 0:
            raise ValueError(f"busy_timeout must be positive, got {v}")
        return v


class SignalsConfig(BaseModel):
    """Signal ingestion defaults."""

    model_config = {"protected_namespaces": ()}

    model_id: str = "signal-extractor-v1"
    default_window_days: int = 30
    atomic_batches: bool = False
    min_extraction_confidence: float = 0.0
    confidence_min: Optional[float] = None
    confidence_max: Optional[float] = None

    @field_validator("default_window_days")
    @classmethod
    def validate_window(cls, v: int) -> int:
        if not 1 <= v <= MAX_WINDOW_DAYS:
            raise ValueError(f"default_window_days must be between 1 and {MAX_WINDOW_DAYS}, got {v}")
        return v

    @model_validator(mode="after")
    def validate_confidence_range(self):
        """Both bounds or neither; min <= max."""
        bounds = (self.confidence_min, self.confidence_max)
        if (bounds[0] is None) != (bounds[1] is None):
            raise ValueError("confidence_min and confidence_max must be set together")
        if bounds[0] is not None and bounds[0] > bounds[1]:
            raise ValueError(f"confidence_min {bounds[0]} exceeds confidence_max {bounds[1]}")
        return self

    @property
    def confidence_range(self) -> tuple[float, float] | None:
        if self.confidence_min is None:
            return None
        return (self.confidence_min, self.confidence_max)


class RetryConfig(BaseModel):
    """Retry policy for LLM calls."""

    max_attempts: int = 3
    min_wait: float = 2.0
    max_wait: float = 30.0


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = "INFO"
    json_mode: bool = Field(default=False, alias="json")

    model_config = {"populate_by_name": True}

    @field_validator("level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        v_upper = v.upper()
        if v_upper not in VALID_LOG_LEVELS:
            raise ValueError(f"Invalid log level: {v}. Must be one of {VALID_LOG_LEVELS}")
        return v_upper


class SignalsAppConfig(BaseModel):
    """Main configuration model."""

    llm: LLMConfig = Field(default_factory=LLMConfig)
    paths: PathsConfig = Field(default_factory=PathsConfig)
    store: StoreConfig = Field(default_factory=StoreConfig)
    signals: SignalsConfig = Field(default_factory=SignalsConfig)
    retry: RetryConfig = Field(default_factory=RetryConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @model_validator(mode="after")
    def expand_env_vars(self):
        """Expand ${VAR} patterns in API keys."""
        key = self.llm.api_key
        if key and key.startswith("${") and key.endswith("}"):
            self.llm.api_key = os.getenv(key[2:-1], "")
        return self

    @classmethod
    def from_dict(cls, data: dict) -> "SignalsAppConfig":
        return cls.model_validate(data)

    def to_dict(self) -> dict:
        return self.model_dump(mode="python")
