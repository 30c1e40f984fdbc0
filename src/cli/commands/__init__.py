"""CLI command modules."""

from .signals import add, extract, history, import_batch, list_signals, stats

__all__ = [
    "add",
    "import_batch",
    "list_signals",
    "history",
    "stats",
    "extract",
]
