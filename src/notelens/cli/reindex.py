"""notelens reindex command - embed every note not yet in the index.

Shows a token/cost estimate and asks before spending anything. Ctrl-C stops
after the batch in flight; what was embedded so far is kept and a later run
resumes from there.
"""

import asyncio
import contextlib
from collections.abc import Callable
from pathlib import Path

import click

from notelens.cli.utils import load_vault_config, open_service, require_credentials, signal_handlers
from notelens.core.progress import pluralize, progress_bar, status
from notelens.daemon.reindex import ReindexEstimate, ReindexProgress, ReindexReport, ReindexState
from notelens.daemon.service import NoteLensService


def _print_estimate(estimate: ReindexEstimate) -> None:
    status(
        f"{pluralize(estimate.document_count, 'note')} in vault, "
        f"{estimate.pending_count} not yet indexed"
    )
    status(
        f"~{estimate.pending_tokens:,} tokens to embed, "
        f"estimated cost ${estimate.estimated_cost_usd:.4f}"
    )


async def _reindex(service: NoteLensService, assume_yes: bool) -> ReindexReport:
    await service.start()
    controller = service.reindex_controller()

    with contextlib.ExitStack() as stack:
        update: list[Callable[[int], None]] = []

        def confirm(estimate: ReindexEstimate) -> bool:
            _print_estimate(estimate)
            if estimate.pending_count == 0:
                return True
            if not assume_yes and not click.confirm("Proceed?", default=True, err=True):
                return False
            update.append(
                stack.enter_context(progress_bar("Embedding", total=estimate.pending_count))
            )
            return True

        def on_progress(progress: ReindexProgress) -> None:
            if update:
                update[0](progress.processed)

        with signal_handlers(controller.cancel):
            report = await controller.run(confirm, on_progress)

    await service.stop()
    return report


@click.command()
@click.option("--yes", "-y", "assume_yes", is_flag=True, help="Skip the confirmation prompt")
@click.option(
    "--batch-size",
    type=click.IntRange(min=1),
    default=None,
    help="Notes embedded concurrently (overrides reindex.batch_size)",
)
@click.pass_context
def reindex_command(ctx: click.Context, assume_yes: bool, batch_size: int | None) -> None:
    """Embed every note that is not yet indexed."""
    vault: Path = ctx.obj["vault"]
    config = load_vault_config(vault)
    if batch_size is not None:
        config.reindex.batch_size = batch_size
    service = open_service(vault, config)
    require_credentials(service)

    report = asyncio.run(_reindex(service, assume_yes))

    if report.state is ReindexState.CANCELLED and report.processed == 0:
        status("Reindex cancelled", style="warning")
        return

    style = "success" if report.failed == 0 else "warning"
    verb = "Cancelled after" if report.state is ReindexState.CANCELLED else "Indexed"
    status(
        f"{verb} {pluralize(report.indexed, 'note')} in {report.elapsed_sec:.1f}s",
        style=style,
    )
    if report.failed:
        status(f"{pluralize(report.failed, 'note')} failed, rerun to retry", style="warning")
    click.echo(
        f"{report.state.value}: {report.indexed}/{report.total} indexed, {report.failed} failed"
    )
