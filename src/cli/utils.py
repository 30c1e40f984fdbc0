"""Shared CLI utilities."""

import json
from pathlib import Path

import structlog
from rich.console import Console

console = Console()
logger = structlog.get_logger()


def get_service(config_model=None):
    """Build a SQLite-backed SignalService from config."""
    from cli.config import load_config_model
    from signals import SignalService, SQLiteSignalStore

    config_model = config_model or load_config_model()
    store = SQLiteSignalStore(
        config_model.paths.db_path, busy_timeout=config_model.store.busy_timeout
    )
    return SignalService(store, confidence_range=config_model.signals.confidence_range)


def get_pipeline(service, config_model):
    """Build the LLM extraction pipeline over service."""
    from cli.retry import retry_from_config
    from llm.factory import create_cheap_provider
    from signals.extractor import SignalExtractor
    from signals.pipeline import SignalPipeline

    llm_cfg = config_model.llm
    provider = create_cheap_provider(
        provider=llm_cfg.provider, api_key=llm_cfg.api_key, model=llm_cfg.model
    )
    extractor = SignalExtractor(
        provider=provider,
        min_confidence=config_model.signals.min_extraction_confidence,
        retry=retry_from_config(config_model.retry),
    )
    return SignalPipeline(
        service,
        extractor,
        model_id=config_model.signals.model_id,
        atomic=config_model.signals.atomic_batches,
    )


def load_batch_file(path: Path) -> dict:
    """Read a batch JSON file: {"model": ..., "observations": [...], ...provenance}."""
    with open(path) as f:
        data = json.load(f)
    if not isinstance(data, dict) or not isinstance(data.get("observations"), list):
        raise ValueError("Batch file must be an object with an 'observations' list")
    for i, item in enumerate(data["observations"]):
        if not isinstance(item, dict):
            raise ValueError(f"observation {i} must be an object, got {type(item).__name__}")
    return data
