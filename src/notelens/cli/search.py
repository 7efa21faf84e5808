"""notelens search command - rank notes by similarity to a query."""

import asyncio
import json
from pathlib import Path

import click

from notelens.cli.utils import open_service, require_credentials
from notelens.daemon.service import NoteLensService
from notelens.index.models import QueryResult


async def _search(service: NoteLensService, query: str, limit: int | None) -> list[QueryResult]:
    await service.start()
    return await service.search_now(query, limit)


@click.command()
@click.argument("query")
@click.option("--limit", "-n", type=click.IntRange(min=1), default=None, help="Maximum results")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def search_command(ctx: click.Context, query: str, limit: int | None, as_json: bool) -> None:
    """Find the notes most similar to QUERY."""
    vault: Path = ctx.obj["vault"]
    service = open_service(vault)
    require_credentials(service)

    results = asyncio.run(_search(service, query, limit))

    if as_json:
        click.echo(
            json.dumps(
                [
                    {
                        "key": r.document_key,
                        "similarity": round(r.similarity, 6),
                        "chunk": r.chunk_index,
                    }
                    for r in results
                ]
            )
        )
        return

    if not results:
        click.echo("No matching notes.")
        return
    for r in results:
        click.echo(f"{r.similarity:.4f}  {r.document_key}")
