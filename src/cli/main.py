"""CLI entry point for the signal store."""

import sys
from pathlib import Path

import click
from rich.console import Console

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from cli.commands import add, extract, history, import_batch, list_signals, stats
from cli.config import load_config_model
from cli.logging_config import setup_logging_from_config

console = Console()


@click.group()
@click.version_option(version="0.1.0")
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging")
@click.option(
    "-c",
    "--config",
    "config_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="Config file (default: ./config.yaml, ~/.signals/config.yaml)",
)
@click.pass_context
def cli(ctx, verbose: bool, config_path: Path | None):
    """Signals - versioned observations derived from your journal."""
    try:
        config = load_config_model(config_path)
    except ValueError as e:
        console.print(f"[red]Config error:[/] {e}")
        sys.exit(1)

    if verbose:
        config.logging.level = "DEBUG"
    setup_logging_from_config(config.logging)

    ctx.ensure_object(dict)
    ctx.obj["config"] = config


cli.add_command(add)
cli.add_command(import_batch)
cli.add_command(list_signals)
cli.add_command(history)
cli.add_command(stats)
cli.add_command(extract)


if __name__ == "__main__":
    cli()
