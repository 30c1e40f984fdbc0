"""Structured logging configuration using structlog."""

import logging
import re
import sys
from contextlib import contextmanager

import structlog

# Patterns to redact from log output
_REDACT_PATTERNS = [
    (re.compile(r"(sk-ant-[a-zA-Z0-9_-]{10})[a-zA-Z0-9_-]*"), r"\1...REDACTED"),
    (re.compile(r"(sk-[a-zA-Z0-9_-]{6})[a-zA-Z0-9_-]{20,}"), r"\1...REDACTED"),
    (re.compile(r"(api[_-]?key['\"]?\s*[:=]\s*['\"]?)[a-zA-Z0-9_-]{10,}"), r"\1REDACTED"),
]

# Journal text never goes to logs in full
_FREE_TEXT_FIELDS = {"response", "text", "note"}
_FREE_TEXT_LIMIT = 80


def _redact_sensitive(_, __, event_dict: dict) -> dict:
    """Structlog processor: mask API keys and truncate journal text."""
    for key, value in event_dict.items():
        if not isinstance(value, str):
            continue
        for pattern, replacement in _REDACT_PATTERNS:
            value = pattern.sub(replacement, value)
        if key in _FREE_TEXT_FIELDS and len(value) > _FREE_TEXT_LIMIT:
            value = value[:_FREE_TEXT_LIMIT] + "...[truncated]"
        event_dict[key] = value
    return event_dict


def _processors() -> list[structlog.types.Processor]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.CallsiteParameterAdder(
            [
                structlog.processors.CallsiteParameter.MODULE,
                structlog.processors.CallsiteParameter.FUNC_NAME,
                structlog.processors.CallsiteParameter.LINENO,
            ]
        ),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
        _redact_sensitive,
    ]


def setup_logging(json_mode: bool = False, level: str = "INFO") -> None:
    """Route structlog through one stderr handler on the root logger.

    Args:
        json_mode: JSON lines for job runners; False = console renderer for the CLI.
        level: Log level string (DEBUG, INFO, WARNING, ERROR, CRITICAL).
    """
    renderer = structlog.processors.JSONRenderer() if json_mode else structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=[*_processors(), structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, renderer],
        )
    )

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(getattr(logging, level.upper(), logging.INFO))


def setup_logging_from_config(logging_config) -> None:
    """Apply a LoggingConfig model."""
    setup_logging(json_mode=logging_config.json_mode, level=logging_config.level)


@contextmanager
def run_context(**fields):
    """Bind fields (user_id, llm_run_id, ...) to every log line in the block."""
    tokens = structlog.contextvars.bind_contextvars(**fields)
    try:
        yield
    finally:
        structlog.contextvars.reset_contextvars(**tokens)
