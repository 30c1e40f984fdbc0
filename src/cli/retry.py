"""Retry decorators with exponential backoff.

Only callers outside the signal core use these; store writes are never
retried automatically.
"""

import logging

import structlog
from tenacity import (
    before_sleep_log,
    retry,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from llm.base import LLMAuthError, LLMError

logger = structlog.stdlib.get_logger(__name__)


def _is_transient_llm_error(exc: BaseException) -> bool:
    return isinstance(exc, LLMError) and not isinstance(exc, LLMAuthError)


def llm_retry(max_attempts: int = 3, min_wait: float = 2.0, max_wait: float = 30.0):
    """Retry decorator for LLM calls.

    Retries rate limits and API errors; auth failures surface immediately.
    """
    return retry(
        stop=stop_after_attempt(max_attempts),
        wait=wait_exponential(multiplier=1, min=min_wait, max=max_wait),
        retry=retry_if_exception(_is_transient_llm_error),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
    )


def retry_from_config(retry_config):
    """Build an LLM retry decorator from a RetryConfig model."""
    return llm_retry(
        max_attempts=retry_config.max_attempts,
        min_wait=retry_config.min_wait,
        max_wait=retry_config.max_wait,
    )
