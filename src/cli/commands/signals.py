"""Signal CLI commands — add, import, list, history, stats, extract."""

import json
import sys
from datetime import datetime
from pathlib import Path

import click
from rich.console import Console
from rich.table import Table

from cli.utils import get_pipeline, get_service, load_batch_file
from signals.errors import PartialBatchError, StoreError, ValidationError
from signals.models import SignalQuery

console = Console()


def _fail(message: str):
    console.print(message)
    sys.exit(1)


def _report_store_error(e: StoreError):
    """Tell partial batch success apart from total failure."""
    if isinstance(e, PartialBatchError):
        console.print(
            f"[yellow]Partially recorded:[/] {len(e.committed_ids)} of {e.total} observations "
            f"stored before item {e.failed_index} failed."
        )
        for signal_id in e.committed_ids:
            console.print(f"  {signal_id}")
        _fail(f"[red]Cause:[/] {e.__cause__}")
    _fail(f"[red]Observation not recorded:[/] {e}")


def _print_signals(signals, as_json: bool, title: str):
    if as_json:
        click.echo(json.dumps([s.to_dict() for s in signals], indent=2))
        return
    if not signals:
        console.print("No signals found.")
        return

    table = Table(title=title)
    table.add_column("ID", style="dim", width=8)
    table.add_column("Entry", width=14)
    table.add_column("Key", style="cyan")
    table.add_column("Ver", justify="right")
    table.add_column("Value", justify="right")
    table.add_column("Conf", justify="right")
    table.add_column("Model", style="dim")
    table.add_column("Generated", style="dim")

    for s in signals:
        table.add_row(
            s.id[:8],
            s.entry_id[:14],
            s.key,
            str(s.version),
            f"{s.value:.2f}",
            f"{s.confidence:.2f}",
            s.model,
            s.generated_at.strftime("%Y-%m-%d %H:%M"),
        )
    console.print(table)


@click.command("add")
@click.argument("user_id")
@click.argument("entry_id")
@click.argument("key")
@click.argument("value", type=float)
@click.argument("confidence", type=float)
@click.option("--model", "-m", default=None, help="Model id (defaults to config signals.model_id)")
@click.option("--trigger", "trigger_capture_id", default=None, help="Triggering capture id")
@click.option("--window-days", type=int, default=None, help="Source window in days")
@click.option("--run-id", "llm_run_id", default=None, help="LLM run id")
@click.pass_context
def add(ctx, user_id, entry_id, key, value, confidence, model, trigger_capture_id, window_days, llm_run_id):
    """Record one observation as the next version of its (entry, key)."""
    config = ctx.obj["config"]
    service = get_service(config)
    try:
        signal_id = service.add_signal(
            user_id,
            entry_id,
            key,
            value,
            confidence,
            model or config.signals.model_id,
            trigger_capture_id,
            window_days,
            llm_run_id,
        )
    except ValidationError as e:
        _fail(f"[red]Invalid input:[/] {e}")
    except StoreError as e:
        _report_store_error(e)

    # Look the record up by id; a concurrent writer may already have superseded it
    try:
        version = next(
            (s.version for s in service.get_history(user_id, entry_id, key) if s.id == signal_id),
            None,
        )
    except StoreError:
        version = None
    if version is None:
        console.print(f"[green]Recorded[/] {signal_id}")
    else:
        console.print(f"[green]Recorded[/] {signal_id} (version {version})")


@click.command("import")
@click.argument("user_id")
@click.argument("batch_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--atomic/--best-effort", default=None, help="All-or-nothing batch (default from config)")
@click.pass_context
def import_batch(ctx, user_id, batch_file, atomic):
    """Record a JSON batch of observations under one provenance."""
    config = ctx.obj["config"]
    try:
        data = load_batch_file(batch_file)
    except (ValueError, json.JSONDecodeError) as e:
        _fail(f"[red]Invalid batch file:[/] {e}")

    service = get_service(config)
    try:
        ids = service.add_signals_batch(
            user_id,
            data["observations"],
            data.get("model") or config.signals.model_id,
            data.get("trigger_capture_id"),
            data.get("source_window_days"),
            data.get("llm_run_id"),
            atomic=config.signals.atomic_batches if atomic is None else atomic,
        )
    except ValidationError as e:
        _fail(f"[red]Invalid input:[/] {e}")
    except StoreError as e:
        _report_store_error(e)

    console.print(f"[green]Recorded[/] {len(ids)} signal(s)")
    for signal_id in ids:
        console.print(f"  {signal_id}")


@click.command("list")
@click.argument("user_id")
@click.option("--entry", "entry_id", default=None, help="Filter by entry id")
@click.option("--key", default=None, help="Filter by key")
@click.option("--trigger", "trigger_capture_id", default=None, help="Filter by trigger capture id")
@click.option("--run-id", "llm_run_id", default=None, help="Filter by LLM run id")
@click.option("--since", type=click.DateTime(), default=None, help="Generated at or after (UTC)")
@click.option("--min-version", type=int, default=None)
@click.option("--window-days", "-d", type=int, default=None, help="Lookback days")
@click.option("--latest", is_flag=True, help="Only the latest version per (entry, key)")
@click.option("--newest-first", is_flag=True, help="Order by generation time, newest first")
@click.option("--limit", "-n", type=int, default=None)
@click.option("--json", "as_json", is_flag=True, help="Print JSON")
@click.pass_context
def list_signals(
    ctx, user_id, entry_id, key, trigger_capture_id, llm_run_id, since: datetime | None,
    min_version, window_days, latest, newest_first, limit, as_json,
):
    """List a user's signals."""
    query = SignalQuery(
        entry_id=entry_id,
        key=key,
        trigger_capture_id=trigger_capture_id,
        llm_run_id=llm_run_id,
        since=since,
        min_version=min_version,
        latest_only=latest,
        newest_first=newest_first,
        limit=limit,
    )
    service = get_service(ctx.obj["config"])
    try:
        signals = service.get_signals(user_id, query, window_days=window_days)
    except ValidationError as e:
        _fail(f"[red]Invalid input:[/] {e}")
    except StoreError as e:
        _fail(f"[red]Could not read signals:[/] {e}")

    _print_signals(signals, as_json, title=f"Signals for {user_id}")


@click.command("history")
@click.argument("user_id")
@click.argument("entry_id")
@click.argument("key")
@click.option("--json", "as_json", is_flag=True, help="Print JSON")
@click.pass_context
def history(ctx, user_id, entry_id, key, as_json):
    """Show every version of one (entry, key), oldest first."""
    service = get_service(ctx.obj["config"])
    try:
        signals = service.get_history(user_id, entry_id, key)
    except ValidationError as e:
        _fail(f"[red]Invalid input:[/] {e}")
    except StoreError as e:
        _fail(f"[red]Could not read signals:[/] {e}")

    _print_signals(signals, as_json, title=f"{entry_id} / {key}")


@click.command("stats")
@click.argument("user_id")
@click.pass_context
def stats(ctx, user_id):
    """Show signal counts for a user."""
    service = get_service(ctx.obj["config"])
    try:
        s = service.get_stats(user_id)
    except StoreError as e:
        _fail(f"[red]Could not read signals:[/] {e}")

    console.print(f"Signals: {s['total_signals']}")
    console.print(f"Partitions: {s['partitions']}")
    console.print(f"Entries: {s['entries']}")
    if s["by_key"]:
        console.print("\nBy key:")
        for key, count in sorted(s["by_key"].items()):
            console.print(f"  {key}: {count}")


@click.command("extract")
@click.argument("user_id")
@click.argument("entry_id")
@click.argument("text", required=False)
@click.option("--window-days", "-d", type=int, default=None, help="Source window (default from config)")
@click.pass_context
def extract(ctx, user_id, entry_id, text, window_days):
    """Extract signals from note text with the LLM and record them."""
    from llm.base import LLMError
    from observability import log_run_summary
    from signals.extractor import Capture

    config = ctx.obj["config"]
    if not text:
        edited = click.edit("# Write the note to analyze\n\n") or ""
        text = "\n".join(line for line in edited.splitlines() if not line.startswith("#")).strip()
        if not text:
            console.print("[yellow]No text provided, cancelled.[/]")
            return

    service = get_service(config)
    try:
        pipeline = get_pipeline(service, config)
    except LLMError as e:
        _fail(f"[red]Config error:[/] {e}")

    try:
        result = pipeline.run(
            user_id,
            [Capture(id=entry_id, text=text)],
            trigger_capture_id=entry_id,
            window_days=window_days or config.signals.default_window_days,
        )
    except ValidationError as e:
        _fail(f"[red]Invalid input:[/] {e}")
    except StoreError as e:
        _report_store_error(e)
    finally:
        log_run_summary()

    if not result.signal_ids:
        console.print("[yellow]No signals extracted.[/]")
        return
    console.print(f"[green]Recorded[/] {len(result.signal_ids)} signal(s) in run {result.llm_run_id}")
    for obs in result.observations:
        console.print(f"  {obs.key}: {obs.value:.2f} (conf={obs.confidence:.2f})")
