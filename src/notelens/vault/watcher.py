"""Vault change feed using watchfiles.

Translates raw filesystem changes into DocumentEvents and hands them to an
async callback one at a time, in arrival order. Debouncing of rapid edits is
not done here; the service coalesces MODIFIED events per document.
"""

from __future__ import annotations

import asyncio
import contextlib
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath

import structlog
from watchfiles import Change, awatch

from notelens.config.constants import PRUNED_DIRS
from notelens.vault.models import ChangeKind, DocumentEvent, DocumentKind, DocumentRef
from notelens.vault.store import is_pruned

log = structlog.get_logger()

_CHANGE_KINDS: dict[Change, ChangeKind] = {
    Change.added: ChangeKind.CREATED,
    Change.modified: ChangeKind.MODIFIED,
    Change.deleted: ChangeKind.DELETED,
}

EventHandler = Callable[[DocumentEvent], Awaitable[None]]


def translate_change(root: Path, change: Change, raw_path: str) -> DocumentEvent | None:
    """DocumentEvent for one watchfiles change, or None if it is outside the vault
    or inside a pruned directory."""
    path = Path(raw_path)
    try:
        rel = PurePosixPath(path.relative_to(root).as_posix())
    except ValueError:
        return None
    if not rel.parts or is_pruned(rel):
        return None

    kind = DocumentKind.FOLDER if path.is_dir() else DocumentKind.FILE
    ref = DocumentRef(key=rel.as_posix(), path=path, kind=kind)
    return DocumentEvent(change=_CHANGE_KINDS[change], ref=ref)


def collapse_changes(changes: set[tuple[Change, str]]) -> dict[str, Change]:
    """One change per path for a batch.

    Editors that save by replace produce deleted+added for the same path; the
    path's current existence decides what the batch meant.
    """
    by_path: dict[str, set[Change]] = {}
    for change, raw_path in changes:
        by_path.setdefault(raw_path, set()).add(change)

    collapsed: dict[str, Change] = {}
    for raw_path, kinds in by_path.items():
        if len(kinds) == 1:
            collapsed[raw_path] = next(iter(kinds))
        elif not Path(raw_path).exists():
            collapsed[raw_path] = Change.deleted
        elif Change.added in kinds and Change.deleted not in kinds:
            collapsed[raw_path] = Change.added
        else:
            collapsed[raw_path] = Change.modified
    return collapsed


def _watch_filter(change: Change, path: str) -> bool:
    return not any(part in PRUNED_DIRS for part in Path(path).parts)


@dataclass
class VaultWatcher:
    """Async watcher over a vault root."""

    root: Path
    on_event: EventHandler
    step_ms: int = 200

    _watch_task: asyncio.Task[None] | None = field(default=None, init=False)
    _stop_event: asyncio.Event = field(default_factory=asyncio.Event, init=False)

    def __post_init__(self) -> None:
        self.root = self.root.resolve()

    @property
    def running(self) -> bool:
        return self._watch_task is not None and not self._watch_task.done()

    async def start(self) -> None:
        if self._watch_task is not None:
            return
        self._stop_event.clear()
        self._watch_task = asyncio.create_task(self._watch_loop())
        log.info("watcher.started", root=str(self.root))

    async def stop(self) -> None:
        self._stop_event.set()
        if self._watch_task is not None:
            self._watch_task.cancel()
            with contextlib.suppress(asyncio.CancelledError, TimeoutError):
                await asyncio.wait_for(self._watch_task, timeout=2.0)
            self._watch_task = None
        log.info("watcher.stopped")

    async def wait(self) -> None:
        """Block until the watch loop exits."""
        if self._watch_task is not None:
            with contextlib.suppress(asyncio.CancelledError):
                await self._watch_task

    async def dispatch(self, changes: set[tuple[Change, str]]) -> int:
        """Deliver one batch of raw changes. Returns the number of events sent."""
        sent = 0
        for raw_path, change in sorted(collapse_changes(changes).items()):
            event = translate_change(self.root, change, raw_path)
            if event is None:
                continue
            try:
                await self.on_event(event)
            except Exception:
                log.exception("watcher.handler_failed", key=event.key, change=event.change.value)
            sent += 1
        return sent

    async def _watch_loop(self) -> None:
        while not self._stop_event.is_set():
            try:
                async for changes in awatch(
                    self.root,
                    watch_filter=_watch_filter,
                    step=self.step_ms,
                    stop_event=self._stop_event,
                    ignore_permission_denied=True,
                ):
                    count = await self.dispatch(changes)
                    log.debug("watcher.changes", raw=len(changes), events=count)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                if self._stop_event.is_set():
                    return
                log.error("watcher.error", error=str(e))
                await asyncio.sleep(1.0)
