"""notelens status command - show index status."""

import asyncio
import json
from pathlib import Path

import click

from notelens.cli.utils import open_service
from notelens.core.progress import pluralize
from notelens.daemon.service import IndexStatus, NoteLensService


async def _status(service: NoteLensService) -> IndexStatus:
    await service.start()
    return service.status()


@click.command()
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def status_command(ctx: click.Context, as_json: bool) -> None:
    """Show what is indexed for the vault."""
    vault: Path = ctx.obj["vault"]
    service = open_service(vault)
    info = asyncio.run(_status(service))

    if as_json:
        click.echo(json.dumps({"vault": str(vault), **info.to_dict()}))
        return

    click.echo(f"Vault: {vault}")
    click.echo(f"Indexed: {pluralize(info.documents, 'note')}, {pluralize(info.chunks, 'chunk')}")
    click.echo(f"Model: {info.model}")
    click.echo(f"API key: {'configured' if info.api_key else 'missing'}")
    click.echo(f"Index: {info.index_dir}")
