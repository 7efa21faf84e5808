"""CLI utilities."""

import asyncio
import contextlib
import signal
from collections.abc import Callable, Iterator
from pathlib import Path

import click

from notelens.config.loader import load_config
from notelens.config.models import NoteLensConfig
from notelens.core.errors import ConfigError
from notelens.daemon.service import NoteLensService


def resolve_vault(path: Path | None) -> Path:
    """Vault root from ``--vault`` or the current directory.

    Raises:
        click.ClickException: The path is not a directory
    """
    vault = (path or Path.cwd()).resolve()
    if not vault.is_dir():
        raise click.ClickException(f"Vault is not a directory: {vault}")
    return vault


def load_vault_config(vault: Path) -> NoteLensConfig:
    try:
        return load_config(vault)
    except ConfigError as e:
        raise click.ClickException(str(e)) from e


def open_service(vault: Path, config: NoteLensConfig | None = None) -> NoteLensService:
    return NoteLensService.open(vault, config or load_vault_config(vault))


def require_credentials(service: NoteLensService) -> None:
    if not service.client.has_credentials:
        raise click.ClickException(
            "No API key configured. Set OPENAI_API_KEY or NOTELENS__EMBEDDING__API_KEY, "
            "or add embedding.api_key to .notelens/config.yaml."
        )


@contextlib.contextmanager
def signal_handlers(handler: Callable[[], None]) -> Iterator[None]:
    """Route SIGINT/SIGTERM to ``handler`` for the duration of the block.

    Must be entered from inside a running event loop.
    """
    loop = asyncio.get_running_loop()
    installed: list[signal.Signals] = []
    for sig in (signal.SIGINT, signal.SIGTERM):
        # Not available off the main thread or on Windows
        with contextlib.suppress(NotImplementedError, RuntimeError, ValueError):
            loop.add_signal_handler(sig, handler)
            installed.append(sig)
    try:
        yield
    finally:
        for sig in installed:
            loop.remove_signal_handler(sig)
