"""Bulk reindexing of a whole vault.

State machine::

    IDLE -> ESTIMATING -> AWAITING_CONFIRMATION -> RUNNING -> COMPLETED
                                   |                  |
                                   +--> CANCELLED <---+

``run`` returns to IDLE once it finishes; the terminal state is carried on
the returned report.

Documents already in the cache are skipped, so an interrupted run resumes
where it stopped. The rest are indexed in fixed-size batches: concurrently
inside a batch, batch after batch, which bounds the load on the embedding
service. Cancellation is a flag checked between batches; the batch in
flight always finishes. The cache is checkpointed every
``checkpoint_interval`` processed documents and once more at the end.
"""

from __future__ import annotations

import asyncio
import contextlib
import inspect
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING

import structlog

from notelens.config.models import ReindexConfig
from notelens.core.errors import NoteLensError, ReindexError
from notelens.core.logging import clear_operation_id, set_operation_id

if TYPE_CHECKING:
    from notelens.index.cache import EmbeddingCache
    from notelens.index.indexer import Indexer
    from notelens.vault.models import DocumentRef, DocumentSource

log = structlog.get_logger()


class ReindexState(Enum):
    IDLE = "idle"
    ESTIMATING = "estimating"
    AWAITING_CONFIRMATION = "awaiting_confirmation"
    RUNNING = "running"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class ReindexEstimate:
    """What a run would cost, shown before asking for confirmation."""

    document_count: int
    pending_count: int
    total_tokens: int
    pending_tokens: int
    estimated_cost_usd: float


@dataclass
class ReindexProgress:
    processed: int = 0
    total: int = 0
    failed: int = 0

    @property
    def percent(self) -> float:
        if self.total == 0:
            return 100.0
        return round(100.0 * self.processed / self.total, 1)


@dataclass(frozen=True)
class ReindexReport:
    state: ReindexState
    processed: int
    indexed: int
    failed: int
    total: int
    checkpoints: int
    estimate: ReindexEstimate | None
    elapsed_sec: float


ConfirmFn = Callable[[ReindexEstimate], bool | Awaitable[bool]]
ProgressFn = Callable[[ReindexProgress], None]
CheckpointFn = Callable[[], Awaitable[bool]]
ExclusiveFn = Callable[[str], contextlib.AbstractAsyncContextManager[object]]


@dataclass
class BulkReindexController:
    """Drives a full-vault reindex with progress, checkpoints and cancellation.

    ``checkpoint`` returns whether the snapshot reached disk. ``exclusive``,
    when given, serializes each document's read and index with live updates
    of the same key.
    """

    source: DocumentSource
    cache: EmbeddingCache
    indexer: Indexer
    checkpoint: CheckpointFn
    config: ReindexConfig = field(default_factory=ReindexConfig)
    exclusive: ExclusiveFn | None = None

    _state: ReindexState = field(default=ReindexState.IDLE, init=False)
    _cancel_requested: bool = field(default=False, init=False)
    _progress: ReindexProgress = field(default_factory=ReindexProgress, init=False)
    _checkpoints: int = field(default=0, init=False)

    @property
    def state(self) -> ReindexState:
        return self._state

    @property
    def progress(self) -> ReindexProgress:
        return self._progress

    def cancel(self) -> None:
        """Request a stop after the current batch."""
        if self._state in (ReindexState.IDLE, ReindexState.COMPLETED, ReindexState.CANCELLED):
            return
        self._cancel_requested = True
        log.info("reindex.cancel_requested", state=self._state.value)

    async def run(
        self,
        confirm: ConfirmFn,
        on_progress: ProgressFn | None = None,
    ) -> ReindexReport:
        """Estimate, ask ``confirm``, then index every document not yet cached.

        Raises:
            ReindexError: A run is already in progress.
        """
        if self._state is not ReindexState.IDLE:
            raise ReindexError.already_running(self._state.value)

        set_operation_id()
        t0 = time.monotonic()
        self._cancel_requested = False
        self._progress = ReindexProgress()
        self._checkpoints = 0
        estimate: ReindexEstimate | None = None
        indexed = 0
        try:
            self._state = ReindexState.ESTIMATING
            refs = [r for r in self.source.list() if self.indexer.is_indexable(r.key)]
            cached = self.cache.keys()
            pending = [r for r in refs if r.key not in cached]
            estimate = await asyncio.to_thread(self._estimate, refs, cached)
            log.info(
                "reindex.estimated",
                documents=estimate.document_count,
                pending=estimate.pending_count,
                tokens=estimate.total_tokens,
                cost_usd=estimate.estimated_cost_usd,
            )

            self._state = ReindexState.AWAITING_CONFIRMATION
            if not await _maybe_await(confirm(estimate)) or self._cancel_requested:
                log.info("reindex.declined")
                return self._report(ReindexState.CANCELLED, 0, estimate, t0)

            self._state = ReindexState.RUNNING
            self._progress.total = len(pending)
            indexed = await self._run_batches(pending, on_progress)

            terminal = ReindexState.CANCELLED if self._cancel_requested else ReindexState.COMPLETED
            if terminal is ReindexState.CANCELLED and self._progress.processed == len(pending):
                terminal = ReindexState.COMPLETED
            await self._checkpoint()
            return self._report(terminal, indexed, estimate, t0)
        finally:
            self._state = ReindexState.IDLE
            clear_operation_id()

    def _estimate(self, refs: list[DocumentRef], cached: set[str]) -> ReindexEstimate:
        total_tokens = 0
        pending_tokens = 0
        chunker = self.indexer.chunker
        for ref in refs:
            try:
                text = self.source.read(ref.key)
                tokens = chunker.count_tokens(self.indexer.embed_input(ref.key, text))
            except (OSError, UnicodeDecodeError, NoteLensError) as e:
                log.warning("reindex.estimate_skipped", key=ref.key, error=str(e))
                continue
            total_tokens += tokens
            if ref.key not in cached:
                pending_tokens += tokens

        pending_count = sum(1 for r in refs if r.key not in cached)
        return ReindexEstimate(
            document_count=len(refs),
            pending_count=pending_count,
            total_tokens=total_tokens,
            pending_tokens=pending_tokens,
            estimated_cost_usd=round(pending_tokens / 1000 * self.config.price_per_1k_tokens, 6),
        )

    async def _run_batches(
        self,
        pending: list[DocumentRef],
        on_progress: ProgressFn | None,
    ) -> int:
        batch_size = self.config.batch_size
        indexed = 0
        for start in range(0, len(pending), batch_size):
            if self._cancel_requested:
                log.info("reindex.cancelled", processed=self._progress.processed)
                break
            batch = pending[start : start + batch_size]
            results = await asyncio.gather(*(self._process(ref, on_progress) for ref in batch))
            indexed += sum(results)
        return indexed

    async def _process(self, ref: DocumentRef, on_progress: ProgressFn | None) -> bool:
        ok = True
        try:
            async with self._guard(ref.key):
                text = await asyncio.to_thread(self.source.read, ref.key)
                await self.indexer.index_document(ref.key, text)
        except Exception:
            ok = False
            self._progress.failed += 1
            log.exception("reindex.document_failed", key=ref.key)

        self._progress.processed += 1
        if on_progress is not None:
            on_progress(self._progress)
        log.debug(
            "reindex.progress",
            processed=self._progress.processed,
            total=self._progress.total,
            percent=self._progress.percent,
        )
        if self._progress.processed % self.config.checkpoint_interval == 0:
            await self._checkpoint()
        return ok

    def _guard(self, key: str) -> contextlib.AbstractAsyncContextManager[object]:
        if self.exclusive is None:
            return contextlib.nullcontext()
        return self.exclusive(key)

    async def _checkpoint(self) -> None:
        if not await self.checkpoint():
            log.warning("reindex.checkpoint_failed", processed=self._progress.processed)
            return
        self._checkpoints += 1
        log.info(
            "reindex.checkpoint", processed=self._progress.processed, documents=len(self.cache)
        )

    def _report(
        self,
        state: ReindexState,
        indexed: int,
        estimate: ReindexEstimate | None,
        t0: float,
    ) -> ReindexReport:
        self._state = state
        report = ReindexReport(
            state=state,
            processed=self._progress.processed,
            indexed=indexed,
            failed=self._progress.failed,
            total=self._progress.total,
            checkpoints=self._checkpoints,
            estimate=estimate,
            elapsed_sec=round(time.monotonic() - t0, 3),
        )
        log.info(
            "reindex.finished",
            state=state.value,
            processed=report.processed,
            indexed=report.indexed,
            failed=report.failed,
        )
        return report


async def _maybe_await(value: bool | Awaitable[bool]) -> bool:
    if inspect.isawaitable(value):
        return bool(await value)
    return bool(value)
