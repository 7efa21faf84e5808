"""Service facade: wires vault, client, cache, indexer, search and persistence."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import structlog

from notelens.client.openai import OpenAIEmbeddingClient
from notelens.config.constants import MASKED_KEY
from notelens.config.loader import get_index_dir, load_config
from notelens.config.models import NoteLensConfig
from notelens.core.errors import PersistenceError
from notelens.daemon.coalescer import UpdateCoalescer
from notelens.daemon.reindex import BulkReindexController, ReindexState
from notelens.index.cache import EmbeddingCache
from notelens.index.chunker import Chunker
from notelens.index.indexer import Indexer
from notelens.index.models import QueryResult
from notelens.index.persistence import NpzSnapshotStore
from notelens.search.query import QueryService
from notelens.vault.models import ChangeKind, DocumentEvent
from notelens.vault.store import VaultStore
from notelens.vault.watcher import VaultWatcher

log = structlog.get_logger()


@dataclass(frozen=True)
class IndexStatus:
    documents: int
    chunks: int
    model: str
    api_key: str
    index_dir: str
    pending_updates: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "documents": self.documents,
            "chunks": self.chunks,
            "model": self.model,
            "api_key": self.api_key,
            "index_dir": self.index_dir,
            "pending_updates": self.pending_updates,
        }


class NoteLensService:
    """
    Orchestrates the indexing pipeline for one vault.

    Components:
    - EmbeddingCache: in-memory index, loaded from and checkpointed to the snapshot
    - Indexer + UpdateCoalescer: debounced live re-embedding of edited notes
    - QueryService: debounced interactive search
    - BulkReindexController: confirmed full-vault reindex
    - VaultWatcher: optional filesystem change feed
    """

    def __init__(
        self,
        config: NoteLensConfig,
        store: VaultStore,
        client: OpenAIEmbeddingClient,
        snapshots: NpzSnapshotStore,
        *,
        chunker: Chunker | None = None,
    ) -> None:
        self.config = config
        self.store = store
        self.client = client
        self.snapshots = snapshots
        self.cache = EmbeddingCache()
        self.chunker = chunker or Chunker(config.embedding.model)
        self.indexer = Indexer(client, self.cache, self.chunker, config.embedding, config.index)
        self.queries = QueryService(client, self.cache, config.search)
        self.coalescer = UpdateCoalescer()
        self.watcher: VaultWatcher | None = None
        self._reindex: BulkReindexController | None = None
        self._save_lock = asyncio.Lock()

    @classmethod
    def open(cls, vault_root: Path, config: NoteLensConfig | None = None) -> NoteLensService:
        """Build a service for ``vault_root`` with its configured collaborators."""
        if config is None:
            config = load_config(vault_root)
        return cls(
            config,
            VaultStore(vault_root, config.index.extensions),
            OpenAIEmbeddingClient(config.embedding),
            NpzSnapshotStore(get_index_dir(vault_root, config)),
        )

    async def start(self, *, watch: bool = False) -> None:
        """Load the snapshot into the cache and optionally start watching."""
        log.info("service.starting", vault=str(self.store.root), watch=watch)
        try:
            entries = await asyncio.to_thread(self.snapshots.load, self.client.model)
        except PersistenceError as e:
            log.error("service.snapshot_unreadable", error=str(e), code=e.code.value)
            entries = {}
        self.cache.replace_all(entries)

        if watch:
            self.watcher = VaultWatcher(self.store.root, self.handle_event)
            await self.watcher.start()
        log.info("service.started", documents=len(self.cache))

    async def stop(self) -> None:
        """Stop watching, settle pending updates and write a final checkpoint."""
        log.info("service.stopping")
        if self.watcher is not None:
            await self.watcher.stop()
            self.watcher = None
        self.queries.cancel_pending()
        if self._reindex is not None and self._reindex.state is not ReindexState.IDLE:
            self._reindex.cancel()
        await self.coalescer.stop()
        await self.checkpoint()
        log.info("service.stopped", documents=len(self.cache))

    async def handle_event(self, event: DocumentEvent) -> None:
        """React to one vault change."""
        if not event.is_document:
            log.debug("service.event_ignored", key=event.key, reason="folder")
            return

        key = event.key
        if event.change is ChangeKind.DELETED:
            self.coalescer.cancel(key)
            # waits out an update for this key that already fired
            async with self.coalescer.exclusive(key):
                await self._remove(key)
            return

        if not self.indexer.is_indexable(key):
            return
        self.coalescer.schedule(
            key,
            lambda: self._refresh(key),
            self.config.indexer.debounce_sec,
        )
        log.debug("service.update_scheduled", key=key, change=event.change.value)

    async def _refresh(self, key: str) -> None:
        # runs under the coalescer's lock for key
        try:
            text = await asyncio.to_thread(self.store.read, key)
        except FileNotFoundError:
            log.info("service.document_vanished", key=key)
            await self._remove(key)
            return
        await self._index(key, text)

    async def index_document(self, key: str, text: str | None = None) -> bool:
        """Embed ``key`` now and checkpoint. Reads the note when ``text`` is None.

        Raises:
            OSError: The note cannot be read.
            EncodingError: The text cannot be tokenized.
            ServiceError: The embedding call failed.
        """
        async with self.coalescer.exclusive(key):
            if text is None:
                text = await asyncio.to_thread(self.store.read, key)
            return await self._index(key, text)

    async def remove_document(self, key: str) -> bool:
        async with self.coalescer.exclusive(key):
            return await self._remove(key)

    async def _index(self, key: str, text: str) -> bool:
        indexed = await self.indexer.index_document(key, text)
        if indexed:
            await self.checkpoint()
        return indexed

    async def _remove(self, key: str) -> bool:
        removed = self.indexer.remove_document(key)
        if removed:
            await self.checkpoint()
        return removed

    def get_indexed_keys(self) -> list[str]:
        return sorted(self.cache.keys())

    async def search(self, query: str, limit: int | None = None) -> list[QueryResult]:
        """Debounced search for interactive callers."""
        return await self.queries.search(query, limit)

    async def search_now(self, query: str, limit: int | None = None) -> list[QueryResult]:
        return await self.queries.search_now(query, limit)

    async def explain(self, context: str, highlighted: str) -> str:
        """Explain ``highlighted`` within ``context``. Empty selection yields ''."""
        if not highlighted.strip():
            return ""
        return await self.client.explain(context, highlighted)

    def set_api_key(self, api_key: str | None) -> None:
        """Replace the service credential. The masked placeholder is a no-op."""
        if api_key == MASKED_KEY:
            return
        self.config.embedding.api_key = api_key or None
        self.client.reconfigure(api_key)

    def get_api_key(self) -> str:
        return self.client.masked_api_key

    async def checkpoint(self) -> bool:
        """Save the cache snapshot. Failures are logged; returns success."""
        snapshot = self.cache.all()
        async with self._save_lock:
            try:
                await asyncio.to_thread(self.snapshots.save, snapshot, self.client.model)
            except PersistenceError as e:
                log.error("service.checkpoint_failed", error=str(e), code=e.code.value)
                return False
        log.debug("service.checkpointed", documents=len(snapshot))
        return True

    def reindex_controller(self) -> BulkReindexController:
        if self._reindex is None:
            self._reindex = BulkReindexController(
                source=self.store,
                cache=self.cache,
                indexer=self.indexer,
                checkpoint=self.checkpoint,
                config=self.config.reindex,
                exclusive=self.coalescer.exclusive,
            )
        return self._reindex

    def status(self) -> IndexStatus:
        entries = self.cache.all()
        return IndexStatus(
            documents=len(entries),
            chunks=sum(e.chunk_count for e in entries.values()),
            model=self.client.model,
            api_key=self.get_api_key(),
            index_dir=str(self.snapshots.directory),
            pending_updates=len(self.coalescer.pending_keys()),
        )
