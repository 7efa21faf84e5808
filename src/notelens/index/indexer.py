"""Single-document indexing: chunk, embed in one call, replace the cache entry."""

from __future__ import annotations

import time
from pathlib import PurePosixPath
from typing import TYPE_CHECKING

import structlog

from notelens.core.errors import InvalidResponseError
from notelens.index.models import DocumentEmbedding

if TYPE_CHECKING:
    from notelens.client.openai import OpenAIEmbeddingClient
    from notelens.config.models import EmbeddingConfig, IndexConfig
    from notelens.index.cache import EmbeddingCache
    from notelens.index.chunker import Chunker

log = structlog.get_logger()


class Indexer:
    """Keeps one document's cache entry in sync with its text.

    The document key is prepended to the text before chunking so that short
    notes still carry their path/title in the embedding.
    """

    def __init__(
        self,
        client: OpenAIEmbeddingClient,
        cache: EmbeddingCache,
        chunker: Chunker,
        embedding_config: EmbeddingConfig,
        index_config: IndexConfig,
    ) -> None:
        self._client = client
        self._cache = cache
        self._chunker = chunker
        self._max_tokens = embedding_config.chunk_tokens
        self._extensions = frozenset(index_config.extensions)

    @property
    def chunker(self) -> Chunker:
        return self._chunker

    def is_indexable(self, key: str) -> bool:
        return PurePosixPath(key).suffix.lower() in self._extensions

    @staticmethod
    def embed_input(key: str, full_text: str) -> str:
        return f"{key}\n{full_text}"

    def prepare_chunks(self, key: str, full_text: str) -> list[str]:
        """Chunks sent to the embedding service for this document."""
        return self._chunker.chunk(self.embed_input(key, full_text), self._max_tokens)

    async def index_document(self, key: str, full_text: str) -> bool:
        """(Re)embed ``key``. Returns False if the document is not indexable.

        The cache is only touched after the service answered; on any failure
        the previous entry stays in place and the error propagates.

        Raises:
            EncodingError: The text cannot be tokenized.
            ServiceError: The embedding call failed.
        """
        if not self.is_indexable(key):
            log.debug("indexer.skipped", key=key, reason="not_indexable")
            return False

        t0 = time.monotonic()
        chunks = self.prepare_chunks(key, full_text)
        vectors = await self._client.embed(chunks)
        if len(vectors) != len(chunks):
            raise InvalidResponseError.count_mismatch(len(chunks), len(vectors))
        self._cache.upsert(key, DocumentEmbedding.from_vectors(key, vectors))

        log.info(
            "indexer.indexed",
            key=key,
            chunks=len(chunks),
            elapsed_ms=round((time.monotonic() - t0) * 1000),
        )
        return True

    def remove_document(self, key: str) -> bool:
        """Drop ``key`` from the cache. Idempotent."""
        removed = self._cache.delete(key)
        if removed:
            log.info("indexer.removed", key=key)
        return removed
