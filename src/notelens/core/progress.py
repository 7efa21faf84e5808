"""User-facing progress feedback for CLI operations.

Design principles:
- Single line updates, no spam
- Graceful degradation in non-TTY (CI, pipes)
- Suppress structlog console output during live displays

Usage::

    from notelens.core.progress import status, spinner, progress_bar

    status("Index loaded", style="success")  # ✓ Index loaded

    with spinner("Searching"):
        do_work()

    with progress_bar("Indexing", total=120) as update:
        update(10)  # 10 of 120 done
"""

from __future__ import annotations

import sys
import threading
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from typing import TYPE_CHECKING

from rich.console import Console
from rich.progress import BarColumn, Progress, TaskProgressColumn, TextColumn

if TYPE_CHECKING:
    from structlog.stdlib import BoundLogger

_console = Console(stderr=True)

_STYLES = {
    "success": "[green]✓[/green] ",
    "error": "[red]✗[/red] ",
    "warning": "[yellow]![/yellow] ",
    "info": "  ",
    "none": "",
}

_suppress_console_logs = threading.local()


def is_console_suppressed() -> bool:
    """Check if console logging is currently suppressed."""
    return getattr(_suppress_console_logs, "active", False)


@contextmanager
def suppress_console_logs() -> Iterator[None]:
    """Suppress structlog console output while a live display is active.

    Logs are still written to file handlers.
    """
    _suppress_console_logs.active = True
    try:
        yield
    finally:
        _suppress_console_logs.active = False


def _get_logger() -> BoundLogger:
    """Get logger lazily to respect runtime config."""
    from notelens.core.logging import get_logger

    return get_logger("progress")


def _is_tty() -> bool:
    return hasattr(sys.stderr, "isatty") and sys.stderr.isatty()


def get_console() -> Console:
    """Get the shared Rich console instance."""
    return _console


def status(message: str, *, style: str = "info", indent: int = 0) -> None:
    """Print a styled status message to stderr."""
    prefix = _STYLES.get(style, "")
    padding = " " * indent
    _console.print(f"{padding}{prefix}{message}", highlight=False)

    _get_logger().debug("status", message=message, style=style)


def pluralize(count: int, singular: str, plural: str | None = None) -> str:
    """Return "1 note" / "3 notes" style phrases."""
    if plural is None:
        plural = singular + "s"
    word = singular if count == 1 else plural
    return f"{count} {word}"


@contextmanager
def spinner(message: str, *, indent: int = 0) -> Iterator[None]:
    """Context manager for a spinner with log suppression."""
    padding = " " * indent
    if _is_tty():
        with (
            suppress_console_logs(),
            _console.status(f"{padding}[cyan]{message}[/cyan]", spinner="dots"),
        ):
            yield
    else:
        _console.print(f"{padding}{message}...")
        yield


@contextmanager
def progress_bar(
    description: str,
    *,
    total: int,
    unit: str = "notes",
) -> Iterator[Callable[[int], None]]:
    """Yield a callback that sets the number of completed items.

    Renders a Rich bar on a TTY; elsewhere it logs start/finish at DEBUG.
    """
    if not _is_tty() or total <= 0:
        log = _get_logger()
        log.debug("progress_start", desc=description, total=total)
        yield lambda _completed: None
        log.debug("progress_done", desc=description, total=total)
        return

    with (
        suppress_console_logs(),
        Progress(
            TextColumn("    {task.description}:"),
            BarColumn(bar_width=25, style="cyan", complete_style="cyan"),
            TaskProgressColumn(),
            TextColumn("{task.completed}/{task.total} {task.fields[unit]}"),
            console=_console,
            transient=True,
        ) as pbar,
    ):
        task_id = pbar.add_task(description, total=total, unit=unit)
        yield lambda completed: pbar.update(task_id, completed=completed)
