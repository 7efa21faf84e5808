"""Embedding index: chunking, cache, similarity ranking and persistence."""

from notelens.index.cache import EmbeddingCache
from notelens.index.chunker import Chunker
from notelens.index.indexer import Indexer
from notelens.index.models import Chunk, DocumentEmbedding, QueryResult
from notelens.index.persistence import NpzSnapshotStore
from notelens.index.similarity import cosine_similarity, rank

__all__ = [
    "Chunk",
    "Chunker",
    "DocumentEmbedding",
    "EmbeddingCache",
    "Indexer",
    "NpzSnapshotStore",
    "QueryResult",
    "cosine_similarity",
    "rank",
]
