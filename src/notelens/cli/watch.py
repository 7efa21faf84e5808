"""notelens watch command - keep the index current while notes are edited."""

import asyncio
import contextlib
from pathlib import Path

import click

from notelens.cli.utils import open_service, require_credentials, signal_handlers
from notelens.core.progress import get_console, pluralize, status
from notelens.daemon.service import NoteLensService


async def _watch(service: NoteLensService) -> None:
    await service.start(watch=True)
    stop = asyncio.Event()
    status(
        f"Watching {service.store.root} ({pluralize(len(service.cache), 'note')} indexed). "
        "Ctrl-C to stop.",
        style="success",
    )
    try:
        with signal_handlers(stop.set):
            await stop.wait()
    finally:
        await service.stop()


@click.command()
@click.pass_context
def watch_command(ctx: click.Context) -> None:
    """Re-embed notes as they are created, edited or deleted."""
    vault: Path = ctx.obj["vault"]
    service = open_service(vault)
    require_credentials(service)

    with contextlib.suppress(KeyboardInterrupt):
        asyncio.run(_watch(service))
    get_console().print(
        f"Stopped. {pluralize(len(service.cache), 'note')} indexed.", style="dim", highlight=False
    )
