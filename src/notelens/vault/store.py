"""Filesystem-backed vault: enumerate and read notes under a root directory."""

from __future__ import annotations

import os
from pathlib import Path, PurePosixPath

import structlog

from notelens.config.constants import PRUNED_DIRS
from notelens.vault.models import DocumentKind, DocumentRef

log = structlog.get_logger()


def is_pruned(rel: PurePosixPath) -> bool:
    """True if any component of a vault-relative path is a pruned directory."""
    return any(part in PRUNED_DIRS for part in rel.parts)


class VaultStore:
    """Notes on disk, keyed by vault-relative POSIX path.

    Only files whose suffix is in ``extensions`` are listed. Host metadata
    directories (``.git``, ``.obsidian``, trash, our own state dir) are never
    walked.
    """

    def __init__(self, root: Path, extensions: list[str] | None = None) -> None:
        self.root = root.resolve()
        exts = extensions if extensions is not None else [".md"]
        self._extensions = frozenset(e.lower() for e in exts)

    def key_for(self, path: Path) -> str:
        """Vault-relative POSIX key for an absolute or relative path."""
        if not path.is_absolute():
            path = self.root / path
        return path.resolve().relative_to(self.root).as_posix()

    def path_for(self, key: str) -> Path:
        return self.root / PurePosixPath(key)

    def ref(self, path: Path) -> DocumentRef:
        """DocumentRef for ``path``; directories become FOLDER refs."""
        if not path.is_absolute():
            path = self.root / path
        kind = DocumentKind.FOLDER if path.is_dir() else DocumentKind.FILE
        return DocumentRef(key=self.key_for(path), path=path, kind=kind)

    def is_document(self, key: str) -> bool:
        rel = PurePosixPath(key)
        return rel.suffix.lower() in self._extensions and not is_pruned(rel)

    def list(self) -> list[DocumentRef]:
        """All indexable notes, sorted by key."""
        refs: list[DocumentRef] = []
        for dirpath, dirnames, filenames in os.walk(self.root):
            dirnames[:] = [d for d in dirnames if d not in PRUNED_DIRS]
            base = Path(dirpath)
            for name in filenames:
                path = base / name
                key = path.relative_to(self.root).as_posix()
                if self.is_document(key):
                    refs.append(DocumentRef(key=key, path=path))
        refs.sort(key=lambda r: r.key)
        log.debug("vault.listed", root=str(self.root), documents=len(refs))
        return refs

    def read(self, key: str) -> str:
        """Full text of a note.

        Raises:
            OSError: The note cannot be read.
            UnicodeDecodeError: The note is not valid UTF-8.
        """
        return self.path_for(key).read_text(encoding="utf-8")
