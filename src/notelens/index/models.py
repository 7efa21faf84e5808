"""Index data types."""

from __future__ import annotations

from dataclasses import dataclass, field

import numpy as np


@dataclass(frozen=True, slots=True)
class Chunk:
    """A token-bounded slice of a document's text. Never persisted."""

    text: str
    token_count: int


@dataclass(frozen=True, eq=False)
class DocumentEmbedding:
    """Cached chunk embeddings of one document.

    ``chunk_vectors`` is a read-only ``(chunks, dim)`` float32 matrix, one row
    per chunk in chunk order. Entries are replaced wholesale, never mutated.
    """

    document_key: str
    chunk_vectors: np.ndarray = field(repr=False)

    def __post_init__(self) -> None:
        matrix = np.array(self.chunk_vectors, dtype=np.float32)
        if matrix.ndim == 1 and matrix.size:
            matrix = matrix.reshape(1, -1)
        if matrix.ndim != 2 or matrix.shape[0] == 0 or matrix.shape[1] == 0:
            raise ValueError(
                f"DocumentEmbedding for {self.document_key!r} needs at least one "
                f"non-empty vector, got shape {matrix.shape}"
            )
        matrix.flags.writeable = False
        object.__setattr__(self, "chunk_vectors", matrix)

    @classmethod
    def from_vectors(cls, document_key: str, vectors: list[np.ndarray]) -> DocumentEmbedding:
        """Build from per-chunk vectors; all must share one dimensionality."""
        if not vectors:
            raise ValueError(f"DocumentEmbedding for {document_key!r} needs at least one vector")
        dims = {len(v) for v in vectors}
        if len(dims) != 1:
            raise ValueError(
                f"Chunk vectors for {document_key!r} differ in dimension: {sorted(dims)}"
            )
        return cls(document_key=document_key, chunk_vectors=np.vstack(vectors))

    @property
    def chunk_count(self) -> int:
        return int(self.chunk_vectors.shape[0])

    @property
    def dim(self) -> int:
        return int(self.chunk_vectors.shape[1])


@dataclass(frozen=True, slots=True)
class QueryResult:
    """One ranked hit. ``chunk_index`` is the chunk that scored best."""

    document_key: str
    similarity: float
    chunk_index: int = 0
