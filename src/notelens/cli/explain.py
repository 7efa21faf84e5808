"""notelens explain command - explain a passage within its note."""

import asyncio
from pathlib import Path

import click

from notelens.cli.utils import open_service, require_credentials
from notelens.core.errors import ServiceError
from notelens.core.progress import spinner
from notelens.search.explain import find_selection, highlight_in_context


@click.command()
@click.argument("file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.argument("selection")
@click.pass_context
def explain_command(ctx: click.Context, file: Path, selection: str) -> None:
    """Explain SELECTION as it is used in FILE.

    The first occurrence of SELECTION is highlighted and the whole note is
    sent as context.
    """
    vault: Path = ctx.obj["vault"]
    service = open_service(vault)
    require_credentials(service)

    text = file.read_text(encoding="utf-8")
    span = find_selection(text, selection)
    if span is None:
        raise click.ClickException(f"Selection not found in {file}")
    highlighted, context = highlight_in_context(text, *span)

    try:
        with spinner("Asking"):
            answer = asyncio.run(service.explain(context, highlighted))
    except ServiceError as e:
        raise click.ClickException(str(e)) from e

    click.echo(answer)
