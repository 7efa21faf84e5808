"""notelens CLI - notelens command."""

from pathlib import Path

import click

from notelens import __version__
from notelens.cli.explain import explain_command
from notelens.cli.reindex import reindex_command
from notelens.cli.search import search_command
from notelens.cli.status import status_command
from notelens.cli.utils import resolve_vault
from notelens.cli.watch import watch_command
from notelens.core.logging import configure_logging


@click.group()
@click.version_option(version=__version__, prog_name="notelens")
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging")
@click.option(
    "--vault",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Vault root (default: current directory)",
)
@click.pass_context
def cli(ctx: click.Context, verbose: bool, vault: Path | None) -> None:
    """notelens - semantic search over a folder of markdown notes."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["vault"] = resolve_vault(vault)
    configure_logging(level="DEBUG" if verbose else "WARNING")


cli.add_command(search_command, name="search")
cli.add_command(reindex_command, name="reindex")
cli.add_command(status_command, name="status")
cli.add_command(watch_command, name="watch")
cli.add_command(explain_command, name="explain")


if __name__ == "__main__":
    cli()
