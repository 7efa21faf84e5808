"""Flat on-disk snapshot of the embedding cache.

Storage: <index_dir>/
  - embeddings.npz   (float32 matrix, one row per chunk + parallel key array)
  - meta.json        (version, model, dim, counts, saved_at)

Rows of one document are contiguous and in chunk order, so the snapshot
round-trips chunk ordering. Both files are written to a temp name and moved
into place, so a crash mid-save leaves the previous snapshot intact.
"""

from __future__ import annotations

import json
import os
import time
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import numpy as np
import structlog

from notelens.config.constants import SNAPSHOT_MATRIX_FILE, SNAPSHOT_META_FILE, SNAPSHOT_VERSION
from notelens.core.errors import PersistenceError
from notelens.index.models import DocumentEmbedding

log = structlog.get_logger()

_META_DEFAULTS: dict[str, Any] = {
    "version": SNAPSHOT_VERSION,
    "model": None,
    "dim": 0,
    "document_count": 0,
    "chunk_count": 0,
    "saved_at": None,
}


class NpzSnapshotStore:
    """Loads and saves cache snapshots under ``directory``."""

    def __init__(self, directory: Path) -> None:
        self._dir = directory

    @property
    def directory(self) -> Path:
        return self._dir

    @property
    def matrix_path(self) -> Path:
        return self._dir / SNAPSHOT_MATRIX_FILE

    @property
    def meta_path(self) -> Path:
        return self._dir / SNAPSHOT_META_FILE

    def read_meta(self) -> dict[str, Any]:
        """Snapshot metadata with missing fields defaulted."""
        meta = dict(_META_DEFAULTS)
        if self.meta_path.exists():
            try:
                meta.update(json.loads(self.meta_path.read_text()))
            except (OSError, ValueError) as e:
                raise PersistenceError.load_failed(str(self.meta_path), str(e)) from e
        return meta

    def load(self, expected_model: str | None = None) -> dict[str, DocumentEmbedding]:
        """Load the snapshot. Missing files mean an empty index.

        A snapshot written for a different embedding model is discarded:
        its vectors are not comparable with new query vectors.

        Raises:
            PersistenceError: Files exist but cannot be read or decoded.
        """
        meta = self.read_meta()
        if not self.matrix_path.exists():
            return {}

        if expected_model and meta["model"] and meta["model"] != expected_model:
            log.warning(
                "snapshot.model_changed",
                stored=meta["model"],
                configured=expected_model,
            )
            return {}

        try:
            with np.load(str(self.matrix_path), allow_pickle=False) as data:
                matrix = data["matrix"].astype(np.float32)
                keys = [str(k) for k in data["keys"]]
        except (OSError, ValueError, KeyError) as e:
            raise PersistenceError.load_failed(str(self.matrix_path), str(e)) from e

        if matrix.shape[0] != len(keys):
            raise PersistenceError.load_failed(
                str(self.matrix_path),
                f"{matrix.shape[0]} rows but {len(keys)} keys",
            )

        rows: dict[str, list[int]] = {}
        for i, key in enumerate(keys):
            rows.setdefault(key, []).append(i)

        entries = {
            key: DocumentEmbedding(document_key=key, chunk_vectors=matrix[idx])
            for key, idx in rows.items()
        }
        log.info(
            "snapshot.loaded",
            documents=len(entries),
            chunks=len(keys),
            dim=matrix.shape[1] if matrix.ndim == 2 else 0,
        )
        return entries

    def save(self, snapshot: Mapping[str, DocumentEmbedding], model: str | None = None) -> None:
        """Persist ``snapshot`` atomically.

        Raises:
            PersistenceError: The snapshot cannot be written.
        """
        dims = {e.dim for e in snapshot.values()}
        if len(dims) > 1:
            raise PersistenceError.save_failed(
                str(self.matrix_path), f"mixed embedding dimensions {sorted(dims)}"
            )

        keys: list[str] = []
        blocks: list[np.ndarray] = []
        for key, entry in snapshot.items():
            keys.extend([key] * entry.chunk_count)
            blocks.append(entry.chunk_vectors)

        meta = {
            "version": SNAPSHOT_VERSION,
            "model": model,
            "dim": dims.pop() if dims else 0,
            "document_count": len(snapshot),
            "chunk_count": len(keys),
            "saved_at": time.time(),
        }

        try:
            self._dir.mkdir(parents=True, exist_ok=True)
            if blocks:
                tmp_matrix = self._dir / f".{SNAPSHOT_MATRIX_FILE}.tmp"
                # np.savez appends .npz unless given a file object
                with tmp_matrix.open("wb") as fh:
                    np.savez_compressed(
                        fh,
                        matrix=np.vstack(blocks).astype(np.float32),
                        keys=np.array(keys, dtype=str),
                    )
                os.replace(tmp_matrix, self.matrix_path)
            elif self.matrix_path.exists():
                self.matrix_path.unlink()

            tmp_meta = self._dir / f".{SNAPSHOT_META_FILE}.tmp"
            tmp_meta.write_text(json.dumps(meta, indent=2))
            os.replace(tmp_meta, self.meta_path)
        except OSError as e:
            raise PersistenceError.save_failed(str(self._dir), str(e)) from e

        log.debug(
            "snapshot.saved",
            documents=meta["document_count"],
            chunks=meta["chunk_count"],
        )

    def clear(self) -> None:
        """Delete the snapshot files."""
        for path in (self.matrix_path, self.meta_path):
            if path.exists():
                path.unlink()
