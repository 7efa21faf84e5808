"""In-memory embedding cache keyed by document.

The cache is the only shared mutable state between live indexing, bulk
reindexing and queries. Entries are immutable ``DocumentEmbedding`` objects
and every mutation swaps or drops a whole entry under one lock, so a reader
sees either the old entry or the new one, never a mix.
"""

from __future__ import annotations

import threading
from collections.abc import Iterator, Mapping

import structlog

from notelens.index.models import DocumentEmbedding

log = structlog.get_logger()


class EmbeddingCache:
    """Mapping of document key to its current chunk embeddings."""

    def __init__(self, entries: Mapping[str, DocumentEmbedding] | None = None) -> None:
        self._entries: dict[str, DocumentEmbedding] = dict(entries or {})
        self._lock = threading.Lock()

    def upsert(self, key: str, embedding: DocumentEmbedding) -> None:
        """Replace the entry for ``key`` wholesale."""
        if embedding.document_key != key:
            raise ValueError(
                f"Embedding belongs to {embedding.document_key!r}, not {key!r}"
            )
        with self._lock:
            self._entries[key] = embedding

    def delete(self, key: str) -> bool:
        """Drop ``key``. Returns False if it was not cached."""
        with self._lock:
            return self._entries.pop(key, None) is not None

    def get(self, key: str) -> DocumentEmbedding | None:
        with self._lock:
            return self._entries.get(key)

    def keys(self) -> set[str]:
        with self._lock:
            return set(self._entries)

    def all(self) -> dict[str, DocumentEmbedding]:
        """Point-in-time copy, safe to iterate while indexing continues."""
        with self._lock:
            return dict(self._entries)

    snapshot = all

    def replace_all(self, entries: Mapping[str, DocumentEmbedding]) -> None:
        """Swap in a loaded snapshot."""
        with self._lock:
            self._entries = dict(entries)
        log.debug("cache.replaced", documents=len(entries))

    def clear(self) -> None:
        with self._lock:
            self._entries = {}

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._entries

    def __iter__(self) -> Iterator[str]:
        return iter(self.keys())
