"""Cosine similarity and best-chunk ranking.

Pure functions over numpy arrays; nothing here touches the network or the
cache lock. A document with several chunks is represented by its best chunk
(max-pool), and the index of that chunk is kept on the result so callers can
locate the match.
"""

from __future__ import annotations

import math
from collections.abc import Mapping, Sequence

import numpy as np

from notelens.index.models import DocumentEmbedding, QueryResult

VectorLike = Sequence[float] | np.ndarray


def cosine_similarity(a: VectorLike, b: VectorLike) -> float:
    """``dot(a, b) / (|a| * |b|)``.

    Returns NaN instead of raising when the lengths differ or a norm is zero.
    """
    va = np.asarray(a, dtype=np.float64).ravel()
    vb = np.asarray(b, dtype=np.float64).ravel()
    if va.shape != vb.shape:
        return math.nan
    denom = float(np.linalg.norm(va) * np.linalg.norm(vb))
    if denom == 0.0:
        return math.nan
    return float(np.dot(va, vb) / denom)


def chunk_similarities(vectors: np.ndarray, query: VectorLike) -> np.ndarray:
    """Cosine similarity of ``query`` against every row of ``vectors``.

    Rows of a different width than the query, and zero rows, score NaN.
    """
    matrix = np.asarray(vectors, dtype=np.float64)
    if matrix.ndim == 1:
        matrix = matrix.reshape(1, -1)
    q = np.asarray(query, dtype=np.float64).ravel()
    if matrix.shape[0] == 0:
        return np.empty(0, dtype=np.float64)
    if matrix.shape[1] != q.shape[0]:
        return np.full(matrix.shape[0], np.nan)

    norms = np.linalg.norm(matrix, axis=1) * np.linalg.norm(q)
    with np.errstate(divide="ignore", invalid="ignore"):
        sims = (matrix @ q) / norms
    sims[norms == 0] = np.nan
    return sims


def best_chunk(vectors: np.ndarray, query: VectorLike) -> tuple[int, float] | None:
    """(index, similarity) of the best-scoring chunk, or None if all are NaN."""
    sims = chunk_similarities(vectors, query)
    if sims.size == 0 or np.all(np.isnan(sims)):
        return None
    idx = int(np.nanargmax(sims))
    return idx, float(sims[idx])


def rank(
    entries: Mapping[str, DocumentEmbedding | np.ndarray | Sequence[VectorLike]],
    query: VectorLike,
    limit: int,
) -> list[QueryResult]:
    """Rank documents by their best chunk's similarity to ``query``.

    Sorted descending; ties keep the iteration order of ``entries``.
    Documents without vectors, or whose every chunk scores NaN, are left out.
    """
    if limit <= 0:
        return []

    scored: list[QueryResult] = []
    for key, entry in entries.items():
        vectors = entry.chunk_vectors if isinstance(entry, DocumentEmbedding) else entry
        if len(vectors) == 0:
            continue
        best = best_chunk(np.asarray(vectors), query)
        if best is None:
            continue
        idx, sim = best
        scored.append(QueryResult(document_key=key, similarity=sim, chunk_index=idx))

    # sorted() is stable, so equal scores keep insertion order
    scored.sort(key=lambda r: -r.similarity)
    return scored[:limit]
